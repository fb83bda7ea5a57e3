"""
Platform-wide exception hierarchy.

Services raise these types; blueprints register handlers against them once
and get consistent HTTP status codes everywhere.

    NotFoundError                 → 404
      ParentNotFoundError         → 404
    ValidationError               → 422
      LevelMismatchError          → 422
      NotALeafError               → 422
      HierarchyCycleError         → 422
    ConflictError                 → 409
      ConcurrentModificationError → 409
    CascadeFailureError           → 500

Usage:
    from wbs_platform.core.exceptions import NotFoundError, LevelMismatchError

    raise NotFoundError(resource="WbsItem", resource_id=node_id)
    raise LevelMismatchError(expected_level="LEVEL2", given_level="LEVEL3")
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist within the given scope.

    Args:
        resource: Human-readable model/entity name (e.g. "Project", "WbsItem").
        resource_id: The PK that was looked up.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ParentNotFoundError(NotFoundError):
    """The referenced parent node does not exist in the target project."""

    def __init__(self, parent_id: str, project_id: int | None = None) -> None:
        self.project_id = project_id
        super().__init__(resource="Parent WBS item", resource_id=parent_id)
        if project_id is not None:
            self.args = (f"Parent WBS item id={parent_id} not found in project {project_id}",)


class ValidationError(Exception):
    """Raised when input fails business-rule validation in the service layer.

    Distinct from HTTP 400 (malformed input, caught in blueprint); this
    exception signals that the data was well-formed but violated a business
    rule. Maps to HTTP 422 in blueprint error handlers.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional structured breakdown for API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class LevelMismatchError(ValidationError):
    """A node's level is not exactly one below its parent (or LEVEL1 for roots)."""

    def __init__(
        self,
        expected_level: str,
        given_level: str | None,
        parent_id: str | None = None,
        message: str | None = None,
    ) -> None:
        self.expected_level = expected_level
        self.given_level = given_level
        if message is None and parent_id is None:
            message = f"Root WBS items must be {expected_level}, got {given_level}"
        elif message is None:
            message = (
                f"Parent {parent_id} only accepts {expected_level} children, got {given_level}"
            )
        super().__init__(
            message,
            details={
                "expected_level": expected_level,
                "given_level": given_level,
                "parent_id": parent_id,
            },
        )


class NotALeafError(ValidationError):
    """Progress was set directly on a node that has children."""

    def __init__(self, node_id: str, child_count: int) -> None:
        self.node_id = node_id
        self.child_count = child_count
        super().__init__(
            f"WBS item {node_id} has {child_count} children; its progress is "
            "aggregated from them and cannot be set directly",
            details={"node_id": node_id, "child_count": child_count},
        )


class HierarchyCycleError(ValidationError):
    """A reparent would make a node its own ancestor."""

    def __init__(self, node_id: str, parent_id: str) -> None:
        super().__init__(
            f"WBS item {node_id} cannot be placed under {parent_id}: it is an ancestor of it",
            details={"node_id": node_id, "parent_id": parent_id},
        )


class ConflictError(Exception):
    """Raised when an operation would create a duplicate unique constraint violation.

    Maps to HTTP 409.

    Args:
        resource: Model name.
        field: The unique field that would be duplicated.
        value: The conflicting value.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class ConcurrentModificationError(ConflictError):
    """Sibling code/order allocation kept colliding after all retries."""

    def __init__(self, project_id: int, parent_id: str | None, attempts: int, code: str | None = None) -> None:
        self.project_id = project_id
        self.parent_id = parent_id
        self.attempts = attempts
        super().__init__(resource="WbsItem", field="code", value=code)
        self.args = (
            f"Could not allocate a sibling code under parent {parent_id or '(root)'} "
            f"in project {project_id} after {attempts} attempts (last tried {code!r})",
        )


class CascadeFailureError(Exception):
    """Subtree deletion failed; the transaction was rolled back with no effect."""

    def __init__(self, node_id: str, reason: str) -> None:
        self.node_id = node_id
        super().__init__(f"Deleting WBS item {node_id} and its subtree failed: {reason}")
