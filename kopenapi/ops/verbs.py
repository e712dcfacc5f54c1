import enum


class Verb(enum.Enum):
    CREATE = "create"
    READ = "read"
    REPLACE = "replace"
    PATCH = "patch"
    DELETE = "delete"
    DELETE_COLLECTION = "delete-collection"
    LIST = "list"
    LIST_FOR_ALL_NAMESPACES = "list-for-all-namespaces"
    WATCH = "watch"
    WATCH_FOR_ALL_NAMESPACES = "watch-for-all-namespaces"
    READ_STATUS = "read-status"
    REPLACE_STATUS = "replace-status"
    PATCH_STATUS = "patch-status"

    @classmethod
    def parse(cls, value: str) -> "Verb":
        # accept read-status, read_status and READ_STATUS alike
        normalized = value.strip().lower().replace("_", "-")
        for verb in cls:
            if verb.value == normalized:
                return verb

        alias = DISCOVERY_ALIASES.get(normalized)
        if alias is not None:
            return alias

        raise ValueError("Unknown verb: %r" % value)

    @property
    def discovery_verb(self) -> str:
        "The verb the API server lists for this operation in discovery"
        return DISCOVERY_VERBS[self]

    @property
    def is_watch(self) -> bool:
        return self in (Verb.WATCH, Verb.WATCH_FOR_ALL_NAMESPACES)

    @property
    def is_list(self) -> bool:
        return self in (Verb.LIST, Verb.LIST_FOR_ALL_NAMESPACES)

    @property
    def is_status(self) -> bool:
        return self in (Verb.READ_STATUS, Verb.REPLACE_STATUS, Verb.PATCH_STATUS)

    @property
    def is_all_namespaces(self) -> bool:
        return self in (Verb.LIST_FOR_ALL_NAMESPACES, Verb.WATCH_FOR_ALL_NAMESPACES)


DISCOVERY_VERBS = {
    Verb.CREATE: "create",
    Verb.READ: "get",
    Verb.REPLACE: "update",
    Verb.PATCH: "patch",
    Verb.DELETE: "delete",
    Verb.DELETE_COLLECTION: "deletecollection",
    Verb.LIST: "list",
    Verb.LIST_FOR_ALL_NAMESPACES: "list",
    Verb.WATCH: "watch",
    Verb.WATCH_FOR_ALL_NAMESPACES: "watch",
    Verb.READ_STATUS: "get",
    Verb.REPLACE_STATUS: "update",
    Verb.PATCH_STATUS: "patch",
}

DISCOVERY_ALIASES = {
    "get": Verb.READ,
    "update": Verb.REPLACE,
    "deletecollection": Verb.DELETE_COLLECTION,
}
