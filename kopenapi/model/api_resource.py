from typing import Sequence

from kopenapi.model.api_group import ApiGroup


class ApiResource:
    """Represents a REST resource available on the kube API server."""

    def __init__(
        self,
        *,
        group: ApiGroup,
        kind: str,
        name: str,
        namespaced: bool,
        verbs: Sequence[str],
        definition: str,
        subresources: Sequence[str] = (),
    ) -> None:
        self.group = group
        self.kind = kind
        self.name = name
        self.namespaced = namespaced
        self.verbs = tuple(verbs)
        self.definition = definition
        self.subresources = tuple(subresources)

        self.qualified_name = (
            f"{self.name}.{self.group.name}" if self.group.name else self.name
        )

    def __repr__(self) -> str:
        return "<%s group=%r, kind=%r, name=%r, namespaced=%r, verbs=%r>" % (
            self.__class__.__name__,
            self.group,
            self.kind,
            self.name,
            self.namespaced,
            self.verbs,
        )

    @property
    def identity(self):
        return (self.group.name, self.group.version, self.kind)

    @property
    def api_version(self) -> str:
        return self.group.api_version

    @property
    def list_kind(self) -> str:
        return f"{self.kind}List"

    def has_subresource(self, name: str) -> bool:
        return name in self.subresources


ALL_VERBS = (
    "create",
    "delete",
    "deletecollection",
    "get",
    "list",
    "patch",
    "update",
    "watch",
)
