import math

from crawler.utils.link_graph import UNREACHABLE, LinkGraph
from parser.model import AnchorInfo, PageDocument

S = "https://site.test"


def _doc(path, *targets):
    anchors = [AnchorInfo(href_raw=t, href_resolved=f"{S}{t}", is_internal=True) for t in targets]
    return PageDocument(url=f"{S}{path}", anchors=anchors)


def _graph(*docs):
    graph = LinkGraph()
    for doc in docs:
        graph.add_page(doc)
    return graph


def test_parallel_anchors_collapse_into_one_counted_edge():
    graph = _graph(_doc("/", "/a", "/a", "/b"), _doc("/b", "/a"))
    assert graph.number_of_edges() == 3
    assert graph.edge_count(f"{S}/", f"{S}/a") == 2
    assert graph.in_degree(f"{S}/a") == 2
    assert graph.inbound_count(f"{S}/a") == 3


def test_self_links_are_ignored():
    graph = _graph(_doc("/a", "/a"))
    assert graph.has_node(f"{S}/a")
    assert graph.in_degree(f"{S}/a") == 0
    assert graph.number_of_edges() == 0


def test_every_anchor_target_becomes_a_node():
    graph = _graph(_doc("/", "/never-crawled"))
    assert f"{S}/never-crawled" in graph.nodes


def test_compute_depths_shortest_path_and_unreachable():
    graph = _graph(_doc("/", "/a"), _doc("/a", "/b"), _doc("/b", "/c"), _doc("/island", "/c"))
    depths = graph.compute_depths([f"{S}/"])
    assert depths[f"{S}/"] == 0
    assert depths[f"{S}/a"] == 1
    assert depths[f"{S}/c"] == 3
    assert depths[f"{S}/island"] == UNREACHABLE
    assert math.isinf(depths.depth(f"{S}/island"))
    assert depths.path_to(f"{S}/island") is None
    assert depths.path_to(f"{S}/c") == [f"{S}/", f"{S}/a", f"{S}/b", f"{S}/c"]


def test_path_to_prefers_lexicographically_smaller_parent():
    graph = _graph(_doc("/", "/c", "/b"), _doc("/c", "/d"), _doc("/b", "/d"))
    depths = graph.compute_depths([f"{S}/"])
    assert depths.path_to(f"{S}/d") == [f"{S}/", f"{S}/b", f"{S}/d"]


def test_multiple_roots():
    graph = _graph(_doc("/", "/a"), _doc("/blog", "/post"), _doc("/a", "/b"))
    depths = graph.compute_depths([f"{S}/", f"{S}/blog"])
    assert depths[f"{S}/post"] == 1
    assert depths[f"{S}/b"] == 2


def test_redirect_counts_as_one_hop():
    graph = _graph(_doc("/", "/old"))
    graph.add_redirect(f"{S}/old", f"{S}/new")
    graph.add_page(_doc("/new", "/deep"))
    depths = graph.compute_depths([f"{S}/"])
    assert depths[f"{S}/new"] == 2
    assert depths[f"{S}/deep"] == 3


def test_reachable_from_respects_max_depth():
    graph = _graph(_doc("/", "/a"), _doc("/a", "/b"), _doc("/b", "/c"))
    assert graph.reachable_from(f"{S}/", 2) == {f"{S}/", f"{S}/a", f"{S}/b"}
    assert graph.reachable_from(f"{S}/missing", 2) == set()


def test_compute_depths_leaves_graph_untouched():
    graph = _graph(_doc("/", "/a"))
    depths = graph.compute_depths([f"{S}/", f"{S}/detached-root"])
    assert depths[f"{S}/detached-root"] == 0
    assert sorted(graph.nodes) == [f"{S}/", f"{S}/a"]
    assert graph.number_of_edges() == 1
