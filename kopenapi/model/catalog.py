"""
Built-in definitions for a handful of well known kinds, in the shape the
swagger loader produces for a full API server schema.
"""

from typing import List, Sequence

from kopenapi.model.api_group import (
    AppsV1,
    CoreV1,
    EventsV1beta1,
    NodeV1alpha1,
    SchedulingV1,
    StorageV1alpha1,
)
from kopenapi.model.api_resource import ALL_VERBS, ApiResource
from kopenapi.model.types import Field, FieldType, TypeDef

META = "io.k8s.apimachinery.pkg.apis.meta.v1"
CORE = "io.k8s.api.core.v1"
APPS = "io.k8s.api.apps.v1"
SCHEDULING = "io.k8s.api.scheduling.v1"
EVENTS = "io.k8s.api.events.v1beta1"
NODE = "io.k8s.api.node.v1alpha1"
STORAGE = "io.k8s.api.storage.v1alpha1"


def string(name: str = "", required: bool = False, description: str = "") -> Field:
    return Field(
        name=name, type=FieldType.STRING, required=required, description=description
    )


def integer(name: str = "", required: bool = False, description: str = "") -> Field:
    return Field(
        name=name, type=FieldType.INTEGER, required=required, description=description
    )


def boolean(name: str = "", required: bool = False, description: str = "") -> Field:
    return Field(
        name=name, type=FieldType.BOOLEAN, required=required, description=description
    )


def date_time(name: str = "", required: bool = False, description: str = "") -> Field:
    return Field(
        name=name, type=FieldType.DATE_TIME, required=required, description=description
    )


def anything(name: str = "", required: bool = False, description: str = "") -> Field:
    return Field(
        name=name, type=FieldType.ANY, required=required, description=description
    )


def obj(name: str, ref: str, required: bool = False, description: str = "") -> Field:
    return Field(
        name=name,
        type=FieldType.OBJECT,
        ref=ref,
        required=required,
        description=description,
    )


def array(name: str, items: Field, required: bool = False, description: str = "") -> Field:
    return Field(
        name=name,
        type=FieldType.ARRAY,
        items=items,
        required=required,
        description=description,
    )


def mapping(name: str, items: Field, required: bool = False, description: str = "") -> Field:
    return Field(
        name=name,
        type=FieldType.MAP,
        items=items,
        required=required,
        description=description,
    )


def item(ref: str) -> Field:
    return obj("", ref)


def resource_fields(*fields: Field) -> List[Field]:
    return [
        string("apiVersion"),
        string("kind"),
        obj("metadata", f"{META}.ObjectMeta"),
        *fields,
    ]


META_DEFINITIONS = [
    TypeDef(
        name=f"{META}.ObjectMeta",
        description="Metadata that all persisted resources must have.",
        fields=[
            string("name"),
            string("generateName"),
            string("namespace"),
            string("uid"),
            string("resourceVersion"),
            integer("generation"),
            date_time("creationTimestamp"),
            date_time("deletionTimestamp"),
            integer("deletionGracePeriodSeconds"),
            mapping("labels", string()),
            mapping("annotations", string()),
            array("ownerReferences", item(f"{META}.OwnerReference")),
            array("finalizers", string()),
            array("managedFields", anything()),
        ],
    ),
    TypeDef(
        name=f"{META}.ListMeta",
        description="Metadata that synthetic resources must have, like lists.",
        fields=[
            string("resourceVersion"),
            string("continue"),
            integer("remainingItemCount"),
            string("selfLink"),
        ],
    ),
    TypeDef(
        name=f"{META}.OwnerReference",
        fields=[
            string("apiVersion", required=True),
            string("kind", required=True),
            string("name", required=True),
            string("uid", required=True),
            boolean("controller"),
            boolean("blockOwnerDeletion"),
        ],
    ),
    TypeDef(
        name=f"{META}.LabelSelector",
        fields=[
            mapping("matchLabels", string()),
            array("matchExpressions", item(f"{META}.LabelSelectorRequirement")),
        ],
    ),
    TypeDef(
        name=f"{META}.LabelSelectorRequirement",
        fields=[
            string("key", required=True),
            string("operator", required=True),
            array("values", string()),
        ],
    ),
    TypeDef(
        name=f"{META}.Status",
        description="Status is a return value for calls that don't return other objects.",
        fields=[
            string("apiVersion"),
            string("kind"),
            obj("metadata", f"{META}.ListMeta"),
            string("status"),
            string("message"),
            string("reason"),
            obj("details", f"{META}.StatusDetails"),
            integer("code"),
        ],
    ),
    TypeDef(
        name=f"{META}.StatusDetails",
        fields=[
            string("name"),
            string("group"),
            string("kind"),
            string("uid"),
            array("causes", item(f"{META}.StatusCause")),
            integer("retryAfterSeconds"),
        ],
    ),
    TypeDef(
        name=f"{META}.StatusCause",
        fields=[string("reason"), string("message"), string("field")],
    ),
    TypeDef(
        name=f"{META}.Preconditions",
        fields=[string("resourceVersion"), string("uid")],
    ),
    TypeDef(
        name=f"{META}.DeleteOptions",
        fields=[
            string("apiVersion"),
            string("kind"),
            array("dryRun", string()),
            integer("gracePeriodSeconds"),
            boolean("orphanDependents"),
            obj("preconditions", f"{META}.Preconditions"),
            string("propagationPolicy"),
        ],
    ),
    TypeDef(
        name=f"{META}.WatchEvent",
        fields=[string("type", required=True), anything("object", required=True)],
    ),
]

CORE_DEFINITIONS = [
    TypeDef(
        name=f"{CORE}.Pod",
        description=(
            "Pod is a collection of containers that can run on a host. This "
            "resource is created by clients and scheduled onto hosts."
        ),
        fields=resource_fields(
            obj("spec", f"{CORE}.PodSpec"),
            obj("status", f"{CORE}.PodStatus"),
        ),
    ),
    TypeDef(
        name=f"{CORE}.PodSpec",
        fields=[
            array("containers", item(f"{CORE}.Container"), required=True),
            array("initContainers", item(f"{CORE}.Container")),
            string("nodeName"),
            mapping("nodeSelector", string()),
            string("restartPolicy"),
            string("serviceAccountName"),
            string("priorityClassName"),
            integer("priority"),
            string("runtimeClassName"),
            integer("terminationGracePeriodSeconds"),
            boolean("hostNetwork"),
            array("volumes", anything()),
            array("tolerations", anything()),
        ],
    ),
    TypeDef(
        name=f"{CORE}.Container",
        fields=[
            string("name", required=True),
            string("image"),
            string("imagePullPolicy"),
            array("command", string()),
            array("args", string()),
            string("workingDir"),
            array("env", item(f"{CORE}.EnvVar")),
            array("ports", item(f"{CORE}.ContainerPort")),
            obj("resources", f"{CORE}.ResourceRequirements"),
        ],
    ),
    TypeDef(
        name=f"{CORE}.EnvVar",
        fields=[string("name", required=True), string("value"), anything("valueFrom")],
    ),
    TypeDef(
        name=f"{CORE}.ContainerPort",
        fields=[
            integer("containerPort", required=True),
            string("name"),
            string("protocol"),
            integer("hostPort"),
        ],
    ),
    TypeDef(
        name=f"{CORE}.ResourceRequirements",
        # quantities are int-or-string on the wire
        fields=[mapping("limits", anything()), mapping("requests", anything())],
    ),
    TypeDef(
        name=f"{CORE}.PodStatus",
        fields=[
            string("phase"),
            string("message"),
            string("reason"),
            string("hostIP"),
            string("podIP"),
            date_time("startTime"),
            array("conditions", item(f"{CORE}.PodCondition")),
            array("containerStatuses", item(f"{CORE}.ContainerStatus")),
            string("qosClass"),
        ],
    ),
    TypeDef(
        name=f"{CORE}.PodCondition",
        fields=[
            string("type", required=True),
            string("status", required=True),
            date_time("lastProbeTime"),
            date_time("lastTransitionTime"),
            string("reason"),
            string("message"),
        ],
    ),
    TypeDef(
        name=f"{CORE}.ContainerStatus",
        fields=[
            string("name", required=True),
            boolean("ready", required=True),
            integer("restartCount", required=True),
            string("image", required=True),
            string("imageID", required=True),
            string("containerID"),
            boolean("started"),
            obj("state", f"{CORE}.ContainerState"),
            obj("lastState", f"{CORE}.ContainerState"),
        ],
    ),
    TypeDef(
        name=f"{CORE}.ContainerState",
        fields=[
            obj("running", f"{CORE}.ContainerStateRunning"),
            obj("terminated", f"{CORE}.ContainerStateTerminated"),
            obj("waiting", f"{CORE}.ContainerStateWaiting"),
        ],
    ),
    TypeDef(
        name=f"{CORE}.ContainerStateRunning",
        fields=[date_time("startedAt")],
    ),
    TypeDef(
        name=f"{CORE}.ContainerStateTerminated",
        fields=[
            integer("exitCode", required=True),
            integer("signal"),
            string("reason"),
            string("message"),
            date_time("startedAt"),
            date_time("finishedAt"),
            string("containerID"),
        ],
    ),
    TypeDef(
        name=f"{CORE}.ContainerStateWaiting",
        fields=[string("reason"), string("message")],
    ),
    TypeDef(
        name=f"{CORE}.PodTemplateSpec",
        fields=[
            obj("metadata", f"{META}.ObjectMeta"),
            obj("spec", f"{CORE}.PodSpec"),
        ],
    ),
    TypeDef(
        name=f"{CORE}.Namespace",
        description="Namespace provides a scope for Names.",
        fields=resource_fields(
            obj("spec", f"{CORE}.NamespaceSpec"),
            obj("status", f"{CORE}.NamespaceStatus"),
        ),
    ),
    TypeDef(
        name=f"{CORE}.NamespaceSpec",
        fields=[array("finalizers", string())],
    ),
    TypeDef(
        name=f"{CORE}.NamespaceStatus",
        fields=[string("phase"), array("conditions", anything())],
    ),
    TypeDef(
        name=f"{CORE}.ConfigMap",
        description="ConfigMap holds configuration data for pods to consume.",
        fields=resource_fields(
            mapping("data", string()),
            mapping("binaryData", string()),
            boolean("immutable"),
        ),
    ),
    TypeDef(
        name=f"{CORE}.ObjectReference",
        fields=[
            string("apiVersion"),
            string("kind"),
            string("name"),
            string("namespace"),
            string("uid"),
            string("resourceVersion"),
            string("fieldPath"),
        ],
    ),
    TypeDef(
        name=f"{CORE}.EventSource",
        fields=[string("component"), string("host")],
    ),
]

APPS_DEFINITIONS = [
    TypeDef(
        name=f"{APPS}.Deployment",
        description="Deployment enables declarative updates for Pods and ReplicaSets.",
        fields=resource_fields(
            obj("spec", f"{APPS}.DeploymentSpec"),
            obj("status", f"{APPS}.DeploymentStatus"),
        ),
    ),
    TypeDef(
        name=f"{APPS}.DeploymentSpec",
        fields=[
            integer("replicas"),
            obj("selector", f"{META}.LabelSelector", required=True),
            obj("template", f"{CORE}.PodTemplateSpec", required=True),
            obj("strategy", f"{APPS}.DeploymentStrategy"),
            integer("minReadySeconds"),
            integer("revisionHistoryLimit"),
            integer("progressDeadlineSeconds"),
            boolean("paused"),
        ],
    ),
    TypeDef(
        name=f"{APPS}.DeploymentStrategy",
        fields=[string("type"), obj("rollingUpdate", f"{APPS}.RollingUpdateDeployment")],
    ),
    TypeDef(
        name=f"{APPS}.RollingUpdateDeployment",
        fields=[anything("maxSurge"), anything("maxUnavailable")],
    ),
    TypeDef(
        name=f"{APPS}.DeploymentStatus",
        fields=[
            integer("observedGeneration"),
            integer("replicas"),
            integer("updatedReplicas"),
            integer("readyReplicas"),
            integer("availableReplicas"),
            integer("unavailableReplicas"),
            integer("collisionCount"),
            array("conditions", item(f"{APPS}.DeploymentCondition")),
        ],
    ),
    TypeDef(
        name=f"{APPS}.DeploymentCondition",
        fields=[
            string("type", required=True),
            string("status", required=True),
            date_time("lastUpdateTime"),
            date_time("lastTransitionTime"),
            string("reason"),
            string("message"),
        ],
    ),
]

SCHEDULING_DEFINITIONS = [
    TypeDef(
        name=f"{SCHEDULING}.PriorityClass",
        description=(
            "PriorityClass defines mapping from a priority class name to the "
            "priority integer value. The value can be any valid integer."
        ),
        fields=resource_fields(
            integer("value", required=True),
            boolean("globalDefault"),
            string("description"),
            string("preemptionPolicy"),
        ),
    ),
]

EVENTS_DEFINITIONS = [
    TypeDef(
        name=f"{EVENTS}.Event",
        description=(
            "Event is a report of an event somewhere in the cluster. It "
            "generally denotes some state change in the system."
        ),
        fields=resource_fields(
            date_time("eventTime", required=True),
            obj("series", f"{EVENTS}.EventSeries"),
            string("reportingController"),
            string("reportingInstance"),
            string("action"),
            string("reason"),
            obj("regarding", f"{CORE}.ObjectReference"),
            obj("related", f"{CORE}.ObjectReference"),
            string("note"),
            string("type"),
            obj("deprecatedSource", f"{CORE}.EventSource"),
            date_time("deprecatedFirstTimestamp"),
            date_time("deprecatedLastTimestamp"),
            integer("deprecatedCount"),
        ),
    ),
    TypeDef(
        name=f"{EVENTS}.EventSeries",
        description=(
            "EventSeries contain information on series of events, ie. thing "
            "that was/is happening continuously for some time."
        ),
        fields=[
            integer("count", required=True),
            date_time("lastObservedTime", required=True),
            string("state", required=True),
        ],
    ),
]

NODE_DEFINITIONS = [
    TypeDef(
        name=f"{NODE}.RuntimeClass",
        description=(
            "RuntimeClass defines a class of container runtime supported in "
            "the cluster."
        ),
        fields=resource_fields(obj("spec", f"{NODE}.RuntimeClassSpec", required=True)),
    ),
    TypeDef(
        name=f"{NODE}.RuntimeClassSpec",
        fields=[
            string("runtimeHandler", required=True),
            obj("overhead", f"{NODE}.Overhead"),
        ],
    ),
    TypeDef(
        name=f"{NODE}.Overhead",
        fields=[mapping("podFixed", anything())],
    ),
]

STORAGE_DEFINITIONS = [
    TypeDef(
        name=f"{STORAGE}.VolumeAttachment",
        description=(
            "VolumeAttachment captures the intent to attach or detach the "
            "specified volume to/from the specified node."
        ),
        fields=resource_fields(
            obj("spec", f"{STORAGE}.VolumeAttachmentSpec", required=True),
            obj("status", f"{STORAGE}.VolumeAttachmentStatus"),
        ),
    ),
    TypeDef(
        name=f"{STORAGE}.VolumeAttachmentSpec",
        fields=[
            string("attacher", required=True),
            string("nodeName", required=True),
            obj("source", f"{STORAGE}.VolumeAttachmentSource", required=True),
        ],
    ),
    TypeDef(
        name=f"{STORAGE}.VolumeAttachmentSource",
        fields=[string("persistentVolumeName"), anything("inlineVolumeSpec")],
    ),
    TypeDef(
        name=f"{STORAGE}.VolumeAttachmentStatus",
        fields=[
            boolean("attached", required=True),
            mapping("attachmentMetadata", string()),
            obj("attachError", f"{STORAGE}.VolumeError"),
            obj("detachError", f"{STORAGE}.VolumeError"),
        ],
    ),
    TypeDef(
        name=f"{STORAGE}.VolumeError",
        fields=[date_time("time"), string("message")],
    ),
]

DEFINITIONS: Sequence[TypeDef] = (
    META_DEFINITIONS
    + CORE_DEFINITIONS
    + APPS_DEFINITIONS
    + SCHEDULING_DEFINITIONS
    + EVENTS_DEFINITIONS
    + NODE_DEFINITIONS
    + STORAGE_DEFINITIONS
)


PodKind = ApiResource(
    group=CoreV1,
    kind="Pod",
    name="pods",
    namespaced=True,
    verbs=ALL_VERBS,
    definition=f"{CORE}.Pod",
    subresources=["status"],
)
NamespaceKind = ApiResource(
    group=CoreV1,
    kind="Namespace",
    name="namespaces",
    namespaced=False,
    verbs=["create", "delete", "get", "list", "patch", "update", "watch"],
    definition=f"{CORE}.Namespace",
    subresources=["status"],
)
ConfigMapKind = ApiResource(
    group=CoreV1,
    kind="ConfigMap",
    name="configmaps",
    namespaced=True,
    verbs=ALL_VERBS,
    definition=f"{CORE}.ConfigMap",
)
DeploymentKind = ApiResource(
    group=AppsV1,
    kind="Deployment",
    name="deployments",
    namespaced=True,
    verbs=ALL_VERBS,
    definition=f"{APPS}.Deployment",
    subresources=["status"],
)
PriorityClassKind = ApiResource(
    group=SchedulingV1,
    kind="PriorityClass",
    name="priorityclasses",
    namespaced=False,
    verbs=ALL_VERBS,
    definition=f"{SCHEDULING}.PriorityClass",
)
EventKind = ApiResource(
    group=EventsV1beta1,
    kind="Event",
    name="events",
    namespaced=True,
    verbs=ALL_VERBS,
    definition=f"{EVENTS}.Event",
)
RuntimeClassKind = ApiResource(
    group=NodeV1alpha1,
    kind="RuntimeClass",
    name="runtimeclasses",
    namespaced=False,
    verbs=ALL_VERBS,
    definition=f"{NODE}.RuntimeClass",
)
VolumeAttachmentKind = ApiResource(
    group=StorageV1alpha1,
    kind="VolumeAttachment",
    name="volumeattachments",
    namespaced=False,
    verbs=ALL_VERBS,
    definition=f"{STORAGE}.VolumeAttachment",
    subresources=["status"],
)

RESOURCES: Sequence[ApiResource] = (
    PodKind,
    NamespaceKind,
    ConfigMapKind,
    DeploymentKind,
    PriorityClassKind,
    EventKind,
    RuntimeClassKind,
    VolumeAttachmentKind,
)
