"""
Pytest tests for the flow graph -> stage tree passes (graph.py).

Run from the repo root:
    pytest jenkins_stages/test_stage_graph.py -v
"""

import logging
import sys
from pathlib import Path

import pytest

# Set up path for imports
parent_dir = Path(__file__).parent.parent
if str(parent_dir) not in sys.path:
    sys.path.insert(0, str(parent_dir))

from jenkins_stages.exceptions import (
    DanglingParentError,
    MissingRootError,
    UnbalancedStructuralMarkerError,
)
from jenkins_stages.enrich import merge_node_detail
from jenkins_stages.graph import build_node_index, build_stage_tree, build_tree, filter_tree
from jenkins_stages.policy import NodeFilterPolicy
from jenkins_stages.stage_types import BuildCoordinates, NodeKind, RawNode

FLOW_START = "org.jenkinsci.plugins.workflow.graph.FlowStartNode"
FLOW_END = "org.jenkinsci.plugins.workflow.graph.FlowEndNode"
STEP_START = "org.jenkinsci.plugins.workflow.cps.nodes.StepStartNode"
STEP_END = "org.jenkinsci.plugins.workflow.cps.nodes.StepEndNode"
STEP_ATOM = "org.jenkinsci.plugins.workflow.cps.nodes.StepAtomNode"

KEEP_EVERYTHING = NodeFilterPolicy(allowed=("",), blocked=())


def raw(node_id, parents, name, node_class=STEP_ATOM, **kwargs):
    return RawNode(
        id=str(node_id),
        parents=tuple(str(p) for p in parents),
        display_name=name,
        node_class=node_class,
        **kwargs,
    )


def declarative_pipeline():
    """One plain stage and one stage with two parallel branches (ids as Jenkins numbers them)."""
    return [
        raw(2, [], "Start of Pipeline", FLOW_START),
        raw(3, [2], "Stage : Start", STEP_START),
        raw(4, [3], "Build", STEP_START),
        raw(5, [4], "Shell Script", icon_color="blue"),
        raw(6, [5], "Print Message", icon_color="blue"),
        raw(7, [6], "Build", STEP_END),
        raw(8, [7], "Stage : End", STEP_END),
        raw(9, [8], "Stage : Start", STEP_START),
        raw(10, [9], "Test", STEP_START),
        raw(11, [10], "Execute in parallel", STEP_START),
        raw(12, [11], "Branch: unit", STEP_START),
        raw(13, [11], "Branch: lint", STEP_START),
        raw(14, [12], "Shell Script", running=True, icon_color="blue_anime"),
        raw(15, [13], "Shell Script", icon_color="red"),
        raw(16, [14], "Branch end", STEP_END),
        raw(17, [15], "Branch end", STEP_END),
        raw(18, [16, 17], "Parallel end", STEP_END),
        raw(19, [18], "Test", STEP_END),
        raw(20, [19], "Stage : End", STEP_END),
        raw(21, [20], "End of Pipeline", FLOW_END),
    ]


def shape(stage):
    """(id, [child shapes]) for a StageNode tree."""
    return (stage.id, [shape(c) for c in stage.children])


def graph_shape(index, node_id):
    return (node_id, [graph_shape(index, c) for c in index[node_id].tree_children])


def reachable(index, node_id):
    out = [node_id]
    for c in index[node_id].tree_children:
        out.extend(reachable(index, c))
    return out


# ============================================================================
# Node index
# ============================================================================

def test_index_inverts_parent_links():
    index = build_node_index([raw(1, [], "a", ""), raw(2, [1], "b", ""), raw(3, [1], "c", "")])

    assert index.root_id == "1"
    assert index["1"].forward_edges == ["2", "3"]
    assert index["2"].forward_edges == []
    assert index["1"].kind == NodeKind.OTHER


def test_index_forward_edges_are_exact_inverse_of_parents():
    index = build_node_index(declarative_pipeline())

    for node in index.in_order():
        for parent_id in node.parents:
            assert node.id in index[parent_id].forward_edges
        for next_id in node.forward_edges:
            assert node.id in index[next_id].parents


def test_index_relabels_stage_start_from_first_child():
    index = build_node_index([
        raw(1, [], "Start of Pipeline", FLOW_START),
        raw(2, [1], "Stage : Start", STEP_START),
        raw(3, [2], "Compile", STEP_START),
        raw(4, [2], "Other child", STEP_START),
    ])

    assert index["2"].display_name == "Stage: Compile"
    assert index["3"].display_name == "Compile"


def test_index_derives_log_urls_for_atomic_steps_only():
    coords = BuildCoordinates(base_url="https://ci.example.com/", job_name="folder/pipe", build_number=42)
    index = build_node_index(declarative_pipeline(), coords)

    assert index["5"].log_url == "https://ci.example.com/job/folder/job/pipe/42/execution/node/5/log/"
    assert index["5"].log_url_full == "https://ci.example.com/job/folder/job/pipe/42/execution/node/5/log/?consoleFull"
    assert index["4"].log_url is None
    assert index["2"].log_url_full is None


def test_index_without_coordinates_has_no_log_urls():
    index = build_node_index(declarative_pipeline())
    assert index["5"].log_url is None


def test_index_missing_root():
    with pytest.raises(MissingRootError):
        build_node_index([raw(1, [2], "a"), raw(2, [1], "b")])


def test_index_dangling_parent():
    with pytest.raises(DanglingParentError) as exc_info:
        build_node_index([raw(1, [], "a", FLOW_START), raw(2, [99], "b")])
    assert exc_info.value.node_id == "2"
    assert exc_info.value.parent_id == "99"


def test_index_multiple_roots_last_wins(caplog):
    with caplog.at_level(logging.WARNING, logger="jenkins_stages.graph"):
        index = build_node_index([raw(1, [], "a", FLOW_START), raw(2, [], "b", FLOW_START)])
    assert index.root_id == "2"
    assert "parentless" in caplog.text


# ============================================================================
# Tree builder
# ============================================================================

def test_tree_single_stage_with_three_steps():
    index = build_node_index([
        raw(1, [], "Start of Pipeline", FLOW_START),
        raw(2, [1], "one"),
        raw(3, [2], "two"),
        raw(4, [3], "three"),
        raw(5, [4], "End of Pipeline", FLOW_END),
    ])
    build_tree(index)

    assert index.root.tree_children == ["2", "3", "4"]
    assert all(index[c].tree_parent == "1" for c in ("2", "3", "4"))
    assert index["5"].tree_parent is None


def test_tree_nests_stages_and_flattens_parallel_branches():
    index = build_node_index(declarative_pipeline())
    build_tree(index)

    assert graph_shape(index, "2") == (
        "2",
        [
            ("3", [("4", [("5", []), ("6", [])])]),
            ("9", [("10", [("11", [("12", [("14", [])]), ("13", [("15", [])])])])]),
        ],
    )


def test_tree_contains_every_node_except_end_markers():
    nodes = declarative_pipeline()
    index = build_node_index(nodes)
    build_tree(index)

    ids = reachable(index, index.root_id)
    end_markers = [n for n in nodes if n.kind == NodeKind.END_MARKER]
    assert len(ids) == len(set(ids))
    assert len(ids) == len(nodes) - len(end_markers)


def test_tree_join_node_attached_once():
    # Two parallel predecessors lead to the same step under the same context.
    index = build_node_index([
        raw(1, [], "Start of Pipeline", FLOW_START),
        raw(2, [1], "left"),
        raw(3, [1], "right"),
        raw(4, [2, 3], "joined"),
        raw(5, [4], "End of Pipeline", FLOW_END),
    ])
    build_tree(index)

    assert index.root.tree_children == ["2", "4", "3"]


def test_tree_unbalanced_end_marker():
    index = build_node_index([raw(1, [], "not a start", ""), raw(2, [1], "stray end", STEP_END)])
    with pytest.raises(UnbalancedStructuralMarkerError) as exc_info:
        build_tree(index)
    assert exc_info.value.node_id == "2"


def test_tree_long_chain_does_not_recurse():
    nodes = [raw(0, [], "Start of Pipeline", FLOW_START)]
    nodes += [raw(i, [i - 1], f"step {i}") for i in range(1, 5001)]
    index = build_node_index(nodes)
    build_tree(index)
    assert len(index.root.tree_children) == 5000


# ============================================================================
# Filter
# ============================================================================

def test_filter_declarative_pipeline():
    root = build_stage_tree(declarative_pipeline())

    assert shape(root) == (
        "2",
        [
            ("3", [("5", [])]),
            ("9", [("12", [("14", [])]), ("13", [("15", [])])]),
        ],
    )
    assert root.children[0].display_name == "Stage: Build"
    assert root.children[1].display_name == "Stage: Test"


def test_filter_promotes_children_in_depth_first_order():
    index = build_node_index([
        raw(1, [], "Start of Pipeline", FLOW_START),
        raw(2, [1], "withEnv", STEP_START),
        raw(3, [2], "a"),
        raw(4, [3], "dir", STEP_START),
        raw(5, [4], "b"),
        raw(6, [5], "dir", STEP_END),
        raw(7, [6], "c"),
        raw(8, [7], "withEnv", STEP_END),
        raw(9, [8], "End of Pipeline", FLOW_END),
    ])
    build_tree(index)
    root = filter_tree(index)

    assert [c.display_name for c in root.children] == ["a", "b", "c"]
    assert all(not c.children for c in root.children)


def test_filter_keeps_everything_allowed():
    index = build_node_index(declarative_pipeline())
    build_tree(index)
    expected = graph_shape(index, index.root_id)

    root = filter_tree(index, KEEP_EVERYTHING)
    assert shape(root) == expected

    again = build_stage_tree(declarative_pipeline(), policy=KEEP_EVERYTHING)
    assert shape(again) == expected


def test_filter_block_list_wins_over_allow_list():
    policy = NodeFilterPolicy(allowed=("Print Message",), blocked=("Print Message",))
    root = build_stage_tree(declarative_pipeline(), policy=policy)

    names = [n.display_name for _, n in root.walk()]
    assert "Print Message" not in names
    assert "Shell Script" in names


def test_filter_root_kept_even_if_not_allowed():
    policy = NodeFilterPolicy(allowed=("Stage:",), blocked=("Start of Pipeline",))
    root = build_stage_tree(declarative_pipeline(), policy=policy)

    assert root.id == "2"
    assert [c.id for c in root.children] == ["3", "9"]


def test_filter_output_has_no_graph_bookkeeping():
    root = build_stage_tree(declarative_pipeline())
    for _, node in root.walk():
        assert not hasattr(node, "forward_edges")
        assert not hasattr(node, "parents")
        assert not hasattr(node, "tree_parent")


def test_build_stage_tree_empty_input():
    assert build_stage_tree([]) is None


def test_build_stage_tree_runs_enricher_before_filter():
    seen = []

    def enricher(index):
        seen.append(len(index))
        index["5"].display_name = "make all"

    root = build_stage_tree(declarative_pipeline(), enricher=enricher)

    assert seen == [20]
    assert [c.display_name for c in root.children[0].children] == ["make all"]


def test_filter_blocks_on_engine_name_after_enrichment():
    def enricher(index):
        merge_node_detail(index["6"], {"id": "6", "parameterDescription": "hello"}, base_url="https://ci.example.com")

    root = build_stage_tree(declarative_pipeline(), enricher=enricher)

    ids = [n.id for _, n in root.walk()]
    assert "6" not in ids
    assert "5" in ids


def test_index_duplicate_id_later_record_wins_first_position_kept():
    index = build_node_index([
        raw(1, [], "Start of Pipeline", FLOW_START),
        raw(2, [1], "first"),
        raw(3, [1], "other"),
        raw(2, [1], "second"),
    ])

    assert index.order == ["1", "2", "3"]
    assert index["2"].display_name == "second"
    assert index["1"].forward_edges == ["2", "3"]
