"""
Reference Manager - run-scoped token registry.

Wraps stored values into immutable :class:`ReferenceHandle` objects and
maps tokens to them, so a later command can ask for ``--ref summary``
instead of an id.

Duplicate tokens follow the configured :class:`TokenPolicy`:

- ``overwrite`` (default): the newest handle wins; a warning is logged
- ``reject``: the second registration raises :class:`TokenConflictError`

Handles are never removed or replaced by id; only the token index moves.

Tags:
    open-tasks, orchestration, references, tokens, registry

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
from pathlib import Path
from typing import Any

from open_tasks.core.errors import ReferenceNotFoundError, TokenConflictError
from open_tasks.framework.logging import get_logger
from open_tasks.orchestration.models import MemoryReference, ReferenceHandle

logger = get_logger(__name__)


class TokenPolicy(str, Enum):
    OVERWRITE = "overwrite"
    REJECT = "reject"


class ReferenceManager:
    """Creates handles and resolves tokens for one pipeline run.

    Example:
        >>> refs = ReferenceManager()
        >>> handle = refs.create_reference("id-1", "hello", token="greeting")
        >>> refs.resolve("greeting").content
        'hello'
    """

    def __init__(self, policy: TokenPolicy | str = TokenPolicy.OVERWRITE):
        self.policy = TokenPolicy(policy)
        self._references: dict[str, ReferenceHandle] = {}
        self._tokens: dict[str, str] = {}

    def ensure_token_available(self, token: str | None) -> None:
        """Raise if registering *token* would violate the policy.

        Raises:
            TokenConflictError: Under ``reject`` when *token* is taken
        """
        if token and self.policy is TokenPolicy.REJECT and token in self._tokens:
            raise TokenConflictError(token)

    def create_reference(
        self,
        id: str,
        content: Any,
        token: str | None = None,
        output_file: Path | str | None = None,
    ) -> ReferenceHandle:
        """Wrap *content* in a handle and register its token.

        Raises:
            TokenConflictError: Under ``reject`` when *token* is taken
        """
        self.ensure_token_available(token)

        handle = ReferenceHandle(id=id, value=content, token=token, output_file=output_file)
        self._references[id] = handle

        if token:
            previous = self._tokens.get(token)
            if previous is not None and previous != id:
                logger.warning("reference.token_overwritten", token=token, previous_id=previous, new_id=id)
            self._tokens[token] = id

        logger.debug("reference.created", id=id, token=token, output_file=str(output_file) if output_file else None)
        return handle

    def from_memory(self, memory: MemoryReference) -> ReferenceHandle:
        """Create a handle for a value returned by ``WorkflowContext.store``."""
        return self.create_reference(memory.id, memory.content, token=memory.token, output_file=memory.path)

    def resolve(self, token: str) -> ReferenceHandle:
        """Handle registered under *token*.

        Raises:
            ReferenceNotFoundError: If *token* is unknown
        """
        ref_id = self._tokens.get(token)
        if ref_id is None:
            raise ReferenceNotFoundError(token, available=list(self._tokens))
        return self._references[ref_id]

    def resolve_all(self, tokens: Iterable[str]) -> dict[str, ReferenceHandle]:
        """Resolve every token up front, in order.

        Raises:
            ReferenceNotFoundError: For the first unknown token
        """
        return {token: self.resolve(token) for token in tokens}

    def get(self, id_or_token: str) -> ReferenceHandle | None:
        """Look up by id first, then by token."""
        if id_or_token in self._references:
            return self._references[id_or_token]
        ref_id = self._tokens.get(id_or_token)
        return self._references.get(ref_id) if ref_id else None

    def list_references(self) -> list[ReferenceHandle]:
        """All handles of the run, in creation order."""
        return list(self._references.values())

    def tokens(self) -> list[str]:
        return sorted(self._tokens)

    def __contains__(self, token: object) -> bool:
        return token in self._tokens

    def __len__(self) -> int:
        return len(self._references)
