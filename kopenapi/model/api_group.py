class ApiGroup:
    """
    One version of an API group, as served by the kube API server:

    {
      "name": "apps",
      "versions": [{"groupVersion": "apps/v1", "version": "v1"}],
      "preferredVersion": {"groupVersion": "apps/v1", "version": "v1"}
    }

    We treat each version as an ApiGroup. The legacy core group has an empty
    name and is served under /api rather than /apis.
    """

    def __init__(self, *, name: str, version: str) -> None:
        self.name = name
        self.version = version

    def __repr__(self) -> str:
        return "<%s name=%r, version=%r>" % (
            self.__class__.__name__,
            self.name,
            self.version,
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, ApiGroup):
            return NotImplemented
        return (self.name, self.version) == (other.name, other.version)

    def __hash__(self) -> int:
        return hash((self.name, self.version))

    @property
    def is_core(self) -> bool:
        return self.name == ""

    @property
    def api_version(self) -> str:
        if self.is_core:
            return self.version
        return f"{self.name}/{self.version}"

    @property
    def endpoint(self) -> str:
        if self.is_core:
            return f"/api/{self.version}"
        return f"/apis/{self.name}/{self.version}"

    @classmethod
    def from_api_version(cls, api_version: str) -> "ApiGroup":
        # apps/v1 -> (apps, v1), v1 -> ("", v1)
        if "/" in api_version:
            name, version = api_version.split("/", 1)
            return cls(name=name, version=version)
        return cls(name="", version=api_version)


def normalize_group_name(name: str) -> str:
    return "" if name == "core" else name


CoreV1 = ApiGroup(name="", version="v1")
AppsV1 = ApiGroup(name="apps", version="v1")
SchedulingV1 = ApiGroup(name="scheduling.k8s.io", version="v1")
EventsV1beta1 = ApiGroup(name="events.k8s.io", version="v1beta1")
NodeV1alpha1 = ApiGroup(name="node.k8s.io", version="v1alpha1")
StorageV1alpha1 = ApiGroup(name="storage.k8s.io", version="v1alpha1")
