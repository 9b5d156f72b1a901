"""Pydantic models for workflow definitions and execution state."""

from typing import Optional, Dict, Any, List
from pydantic import BaseModel, ConfigDict, Field, field_validator

from constants import NODE_TYPES


class NodePosition(BaseModel):
    """Canvas position of a node in the visual editor."""
    x: Optional[float] = 0
    y: Optional[float] = 0


class WorkflowNode(BaseModel):
    """One step of a workflow.

    ``type`` is a plain string here so definitions loaded from storage can
    still carry types the executor does not know; those fail at run time.
    """
    model_config = ConfigDict(extra="allow")

    id: str = Field(min_length=1)
    type: str
    name: str = ""
    position: Optional[NodePosition] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    outputs: Optional[List[str]] = None

    @property
    def sort_key(self) -> float:
        if self.position is None or self.position.y is None:
            return 0
        return self.position.y


class Connection(BaseModel):
    """Directed edge between two nodes."""
    model_config = ConfigDict(populate_by_name=True)

    from_: str = Field(alias="from")
    to: str


class WorkflowDefinition(BaseModel):
    """Workflow as accepted by the API and consumed by the executor."""
    id: Optional[str] = None
    name: str = Field(min_length=1, max_length=255)
    nodes: List[WorkflowNode] = Field(default_factory=list)
    connections: List[Connection] = Field(default_factory=list)
    active: bool = False

    @field_validator("nodes")
    @classmethod
    def validate_node_types(cls, nodes: List[WorkflowNode]) -> List[WorkflowNode]:
        """Reject unknown node types and duplicate ids at the API boundary."""
        seen = set()
        for node in nodes:
            if node.type not in NODE_TYPES:
                raise ValueError(f"Unknown node type: {node.type}")
            if node.id in seen:
                raise ValueError(f"Duplicate node id: {node.id}")
            seen.add(node.id)
        return nodes

    def storage_dict(self) -> Dict[str, Any]:
        """Serialize nodes and connections the way they are stored."""
        return {
            "name": self.name,
            "nodes": [n.model_dump(exclude_none=True) for n in self.nodes],
            "connections": [c.model_dump(by_alias=True) for c in self.connections],
            "active": self.active,
        }


class StoredWorkflow(BaseModel):
    """Workflow loaded back from the database, node types unchecked."""
    id: str
    name: str
    nodes: List[WorkflowNode] = Field(default_factory=list)
    connections: List[Connection] = Field(default_factory=list)
    active: bool = False


class ExecutionContext(BaseModel):
    """State of one workflow run: input, per-node outputs and the first error."""
    input: Dict[str, Any] = Field(default_factory=dict)
    output: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"input": self.input, "output": self.output}
        if self.error is not None:
            data["error"] = self.error
        return data

    def snapshot(self) -> Dict[str, Any]:
        """Deep copy suitable for queueing alongside a retry job."""
        return self.model_copy(deep=True).to_dict()
