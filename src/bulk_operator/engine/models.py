"""Domain models for the bulk operator.

This module defines the immutable data structures shared by the operator,
the lifecycles and the transports: single write actions, batches of actions
and their wire payload, the parsed bulk response and configuration records.
"""

from __future__ import annotations

import json
import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any, Self

# Header fields in emission order: (action attribute, wire key).
_HEADER_FIELDS: tuple[tuple[str, str], ...] = (
    ("index", "_index"),
    ("type", "_type"),
    ("id", "_id"),
    ("parent", "_parent"),
    ("routing", "_routing"),
    ("version", "_version"),
    ("version_type", "version_type"),
    ("refresh", "refresh"),
    ("wait_for_active_shards", "wait_for_active_shards"),
)


class ValidationError(ValueError):
    """Raised when an action is built without its required fields."""

    pass


class ClosedError(RuntimeError):
    """Raised when actions are added to a closed operator."""

    pass


def _encode_body(body: Any) -> str | bytes | None:
    """Serialize a mapping body to JSON, passing blobs through untouched."""
    if body is None or isinstance(body, (str, bytes)):
        return body
    return json.dumps(body, ensure_ascii=False, separators=(",", ":"))


@dataclass(frozen=True, slots=True)
class Action:
    """A single bulk write intent.

    Only the operation name is required. Index and type routing may be left
    unset, in which case the request path decides where the action lands.

    Attributes:
        operation: Bulk verb such as "index", "create", "update" or "delete".
        index: Target index name.
        type: Target mapping type.
        id: Document identifier.
        parent: Parent document identifier.
        routing: Shard routing value.
        version: Expected document version.
        version_type: Version comparison mode (e.g. "external").
        refresh: Whether the write should trigger a refresh. None if unspecified.
        wait_for_active_shards: Whether to wait for active shards. None if unspecified.
        body: Serialized document source, None for deletes.
    """

    operation: str
    index: str | None = None
    type: str | None = None
    id: str | None = None
    parent: str | None = None
    routing: str | None = None
    version: int | None = None
    version_type: str | None = None
    refresh: bool | None = None
    wait_for_active_shards: bool | None = None
    body: str | bytes | None = None

    def __post_init__(self) -> None:
        if not self.operation:
            raise ValidationError("Action requires an operation")

    @staticmethod
    def builder() -> ActionBuilder:
        """Return a new validating builder for an action."""
        return ActionBuilder()

    @classmethod
    def index_document(
        cls, index: str | None, document: Any, id: str | None = None, **fields: Any
    ) -> Self:
        """Create an "index" action for a document."""
        return cls(operation="index", index=index, id=id, body=_encode_body(document), **fields)

    @classmethod
    def create_document(
        cls, index: str | None, document: Any, id: str | None = None, **fields: Any
    ) -> Self:
        """Create a "create" action, which fails if the document already exists."""
        return cls(operation="create", index=index, id=id, body=_encode_body(document), **fields)

    @classmethod
    def update_document(cls, index: str | None, id: str, document: Any, **fields: Any) -> Self:
        """Create an "update" action.

        Mapping documents are wrapped as a partial update (``{"doc": ...}``).
        Pre-serialized bodies are sent as given.
        """
        if isinstance(document, Mapping):
            document = {"doc": dict(document)}
        return cls(operation="update", index=index, id=id, body=_encode_body(document), **fields)

    @classmethod
    def delete_document(cls, index: str | None, id: str, **fields: Any) -> Self:
        """Create a "delete" action, which carries no body."""
        return cls(operation="delete", index=index, id=id, **fields)

    def header(self) -> dict[str, dict[str, Any]]:
        """Action metadata line as a dictionary, with only the fields that are set."""
        metadata: dict[str, Any] = {}
        for attribute, key in _HEADER_FIELDS:
            value = getattr(self, attribute)
            if value is not None:
                metadata[key] = value
        return {self.operation: metadata}


class ActionBuilder:
    """Fluent builder for :class:`Action`.

    Every setter accepts None to mean "unset". Validation happens in
    :meth:`build`.
    """

    def __init__(self) -> None:
        self._fields: dict[str, Any] = {}

    def _set(self, name: str, value: Any) -> Self:
        self._fields[name] = value
        return self

    def operation(self, operation: str | None) -> Self:
        return self._set("operation", operation)

    def index(self, index: str | None) -> Self:
        return self._set("index", index)

    def type(self, type: str | None) -> Self:
        return self._set("type", type)

    def id(self, id: str | None) -> Self:
        return self._set("id", id)

    def parent(self, parent: str | None) -> Self:
        return self._set("parent", parent)

    def routing(self, routing: str | None) -> Self:
        return self._set("routing", routing)

    def version(self, version: int | None) -> Self:
        return self._set("version", version)

    def version_type(self, version_type: str | None) -> Self:
        return self._set("version_type", version_type)

    def refresh(self, refresh: bool | None) -> Self:
        return self._set("refresh", refresh)

    def wait_for_active_shards(self, wait_for_active_shards: bool | None) -> Self:
        return self._set("wait_for_active_shards", wait_for_active_shards)

    def body(self, body: str | bytes | None) -> Self:
        return self._set("body", body)

    def source(self, document: Any) -> Self:
        """Set the body from a mapping or an already serialized blob."""
        return self._set("body", _encode_body(document))

    def build(self) -> Action:
        """Build the action.

        Raises:
            ValidationError: If no operation has been set.
        """
        if not self._fields.get("operation"):
            raise ValidationError("Action requires an operation")
        return Action(**self._fields)


@dataclass(frozen=True)
class Batch:
    """An ordered, immutable group of actions sent in one bulk request.

    The derived values (count, payload and size) are computed on first
    access and cached for the lifetime of the batch.

    Attributes:
        actions: The actions in insertion order.
    """

    actions: tuple[Action, ...] = ()

    @staticmethod
    def builder() -> BatchBuilder:
        """Return a new batch accumulator."""
        return BatchBuilder()

    @property
    def count(self) -> int:
        """Number of actions in the batch."""
        return len(self.actions)

    @cached_property
    def payload(self) -> bytes:
        """Newline-delimited JSON body for the bulk endpoint.

        Each action contributes a metadata line followed by a body line; the
        body line is empty when the action has no body.

        Returns:
            The UTF-8 encoded payload.
        """
        chunks: list[bytes] = []
        for action in self.actions:
            header = json.dumps(action.header(), ensure_ascii=False, separators=(",", ":"))
            chunks.append(header.encode("utf-8"))
            chunks.append(b"\n")
            body = action.body
            if isinstance(body, str):
                body = body.encode("utf-8")
            if body:
                chunks.append(body)
            chunks.append(b"\n")
        return b"".join(chunks)

    @cached_property
    def estimated_size_bytes(self) -> int:
        """Exact byte length of :attr:`payload`."""
        return len(self.payload)

    def __len__(self) -> int:
        return len(self.actions)


class BatchBuilder:
    """Mutable accumulator of actions, frozen into a :class:`Batch` by :meth:`build`."""

    def __init__(self) -> None:
        self._actions: list[Action] = []

    def add_action(self, action: Action) -> Self:
        self._actions.append(action)
        return self

    def add_actions(self, actions: Iterable[Action]) -> Self:
        self._actions.extend(actions)
        return self

    def __len__(self) -> int:
        return len(self._actions)

    def build(self) -> Batch:
        return Batch(actions=tuple(self._actions))


@dataclass(frozen=True, slots=True)
class BulkResponseItem:
    """Outcome of a single action inside a bulk response.

    Attributes:
        operation: The bulk verb this item reports on.
        status: HTTP-like status code for the item.
        index: Index the action was applied to, if reported.
        id: Document identifier, if reported.
        error: Error object reported by the service, None on success.
    """

    operation: str
    status: int
    index: str | None = None
    id: str | None = None
    error: Any = None

    @property
    def failed(self) -> bool:
        """Whether this item is a failure (status 400 or above)."""
        return self.status >= 400


@dataclass(frozen=True, slots=True)
class BulkResponse:
    """Parsed bulk API response.

    Attributes:
        errors: Batch-level flag set when at least one item failed.
        items: Per-action outcomes, in submission order.
        took: Server-side processing time in milliseconds, if reported.
    """

    errors: bool
    items: tuple[BulkResponseItem, ...] = ()
    took: int | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """Build a response from the decoded JSON reply of the bulk endpoint.

        Args:
            data: Decoded response body.

        Returns:
            The parsed response.

        Raises:
            ValueError: If an item is not a single-key object.
        """
        items: list[BulkResponseItem] = []
        for raw in data.get("items", ()):
            if not isinstance(raw, Mapping) or len(raw) != 1:
                raise ValueError(f"Malformed bulk response item: {raw!r}")
            ((operation, result),) = raw.items()
            items.append(
                BulkResponseItem(
                    operation=operation,
                    status=int(result.get("status", 0)),
                    index=result.get("_index"),
                    id=result.get("_id"),
                    error=result.get("error"),
                )
            )
        return cls(errors=bool(data.get("errors", False)), items=tuple(items), took=data.get("took"))

    def failed_items(self) -> list[tuple[int, BulkResponseItem]]:
        """Positions and items whose status marks a failure."""
        return [(position, item) for position, item in enumerate(self.items) if item.failed]


def _optional_int(name: str) -> int | None:
    value = os.getenv(name)
    return int(value) if value else None


@dataclass(frozen=True, slots=True)
class OperatorConfig:
    """Configuration for a BulkOperator.

    Attributes:
        concurrency: Maximum number of in-flight dispatches (default: 1).
        interval: Periodic flush delay in milliseconds, None for no timer.
        max_actions: Pending action count that triggers a flush, None for unbounded.
    """

    concurrency: int = 1
    interval: int | None = None
    max_actions: int | None = None

    @classmethod
    def from_env(cls) -> Self:
        """Load configuration from ``BULK_OPERATOR_*`` environment variables."""
        return cls(
            concurrency=int(os.getenv("BULK_OPERATOR_CONCURRENCY", "1")),
            interval=_optional_int("BULK_OPERATOR_INTERVAL_MS"),
            max_actions=_optional_int("BULK_OPERATOR_MAX_ACTIONS"),
        )


@dataclass(frozen=True, slots=True)
class TransportConfig:
    """Configuration for HTTP transports.

    Attributes:
        base_url: Root URL of the search service (default: ``$BULK_OPERATOR_URL``
            or http://localhost:9200).
        timeout: Request timeout in seconds (default: 30.0).
        max_workers: Worker threads used to run requests (default: 10).
        max_connections: Maximum number of concurrent connections (default: 100).
        max_keepalive_connections: Maximum keep-alive connections to maintain (default: 20).
        keepalive_expiry: Seconds before closing idle keep-alive connections (default: 30.0).
        http2: Enable HTTP/2 for the httpx transport (default: False).
    """

    base_url: str = field(
        default_factory=lambda: os.getenv("BULK_OPERATOR_URL", "http://localhost:9200")
    )
    timeout: float = 30.0
    max_workers: int = 10
    max_connections: int = 100
    max_keepalive_connections: int = 20
    keepalive_expiry: float = 30.0
    http2: bool = False
