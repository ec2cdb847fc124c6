"""Graph generation builder.

Graph agents always run the chat endpoint in JSON mode and answer with a
``{"nodes": [...], "edges": [...]}`` document. A document without both arrays
is a failure; any other structural problem (orphaned nodes, dangling edges,
missing node fields) is logged and reported as a warning next to the graph.
"""

from __future__ import annotations

from collections import Counter
from typing import Any

from agent_orchestrator.core.constants import GRAPH_OUTPUT_FORMAT
from agent_orchestrator.core.exceptions import MalformedResponseError
from agent_orchestrator.models.agent_models import AgentConfig, AgentRequestData
from agent_orchestrator.models.response_models import AgentResponseData
from agent_orchestrator.services.builders import BuilderContext
from agent_orchestrator.services.builders.chat import priced_usage, request_completion
from agent_orchestrator.utils.json_utils import extract_json, json_pretty
from agent_orchestrator.utils.logger import logger


def parse_graph(content: str) -> dict[str, Any]:
    """Extract the graph document from model output.

    Raises:
        MalformedResponseError: No JSON, or a document without ``nodes`` and ``edges`` arrays.
    """
    if not content.strip():
        raise MalformedResponseError("No graph data in response")

    graph = extract_json(content)
    if graph is None:
        raise MalformedResponseError("Invalid graph JSON format")
    if not isinstance(graph, dict):
        raise MalformedResponseError("Graph data must be an object")
    if not isinstance(graph.get("nodes"), list):
        raise MalformedResponseError("Graph must have a nodes array")
    if not isinstance(graph.get("edges"), list):
        raise MalformedResponseError("Graph must have an edges array")
    return graph


def check_graph_structure(graph: dict[str, Any]) -> list[str]:
    """Collect structural warnings for a parsed graph.

    Also fills in ``payload.nodeTypeId`` (``<schemaId>-<payload.type>`` or the
    bare schemaId) on nodes that omit it.

    Args:
        graph: Document returned by parse_graph

    Returns:
        Human-readable warnings, empty when the graph is well formed
    """
    nodes = [node for node in graph["nodes"] if isinstance(node, dict)]
    edges = [edge for edge in graph["edges"] if isinstance(edge, dict)]
    warnings: list[str] = []

    if len(nodes) != len(graph["nodes"]) or len(edges) != len(graph["edges"]):
        warnings.append("Graph nodes and edges must be objects")
    if not nodes:
        warnings.append("Graph must have at least 1 node")
    if len(nodes) > 1 and not edges:
        warnings.append("Graph with multiple nodes must have at least 1 edge")

    ids = [node.get("id") for node in nodes]
    if any(not isinstance(node_id, str) or not node_id for node_id in ids):
        warnings.append("All nodes must have a valid string id")
    counts = Counter(node_id for node_id in ids if isinstance(node_id, str))
    duplicates = sorted(node_id for node_id, count in counts.items() if count > 1)
    if duplicates:
        warnings.append(f"Duplicate node IDs: {', '.join(duplicates)}")

    for node in nodes:
        name = node.get("id") or "unnamed"
        schema_id = node.get("schemaId")
        if not isinstance(schema_id, str) or not schema_id:
            warnings.append(f"Node {name} must have a valid schemaId")
        if "incomplete" not in node:
            warnings.append(f"Node {name} must have incomplete field")
        payload = node.get("payload")
        if not isinstance(payload, dict):
            warnings.append(f"Node {name} must have a payload object")
        elif not payload.get("nodeTypeId") and schema_id:
            payload["nodeTypeId"] = f"{schema_id}-{payload['type']}" if payload.get("type") else schema_id

    known = {node_id for node_id in ids if isinstance(node_id, str)}
    connected: set[str] = set()
    for edge in edges:
        source, target = edge.get("source"), edge.get("target")
        if not (source and isinstance(source, str) and target and isinstance(target, str)):
            warnings.append("All edges must have source and target")
            continue
        connected.update((source, target))
        for end in (source, target):
            if end not in known:
                warnings.append(f"Edge references invalid node: {end}")

    if len(nodes) > 1 and edges:
        orphaned = [node_id for node_id in ids if isinstance(node_id, str) and node_id not in connected]
        if orphaned:
            warnings.append(f"Nodes not connected to the graph: {', '.join(orphaned)}")

    return warnings


async def build_graph(agent: AgentConfig, request: AgentRequestData, ctx: BuilderContext) -> AgentResponseData:
    """Generate a graph document for the agent.

    The response is a pretty-printed ``{"graph", "format", "model"}`` document
    (plus ``warnings`` when the structure check found problems).
    """
    # Graph output is JSON, so the plain-text rule blocks stay out of the system prompt
    graph_agent = agent.model_copy(update={"required_output_format": GRAPH_OUTPUT_FORMAT})
    model, completion = await request_completion(graph_agent, request, ctx, json_mode=True)

    graph = parse_graph(completion.content)
    warnings = check_graph_structure(graph)
    if warnings:
        logger.warning(
            f"Graph validation warnings from {model}: {'; '.join(warnings)}",
            node_count=len(graph["nodes"]),
            edge_count=len(graph["edges"]),
        )

    document: dict[str, Any] = {"graph": graph, "format": GRAPH_OUTPUT_FORMAT, "model": model}
    if warnings:
        document["warnings"] = warnings

    return AgentResponseData(
        response=json_pretty(document),
        format=GRAPH_OUTPUT_FORMAT,
        token_usage=await priced_usage(ctx, model, completion),
    )
