import base64
import fnmatch
import logging
import os
import ssl
import tempfile
from typing import Any, Dict, List, Optional, Sequence

import yaml

from kopenapi.tools.repr import disp_secret_blob, disp_secret_string


class ExecConfig:
    "A credential plugin, run to obtain a short lived token"

    def __init__(
        self, *, command: str, args: Sequence[str], env: Dict[str, str], api_version: str
    ) -> None:
        self.command = command
        self.args = list(args)
        self.env = env
        self.api_version = api_version

    def __repr__(self) -> str:
        return "<%s command=%r, args=%r, api_version=%r>" % (
            self.__class__.__name__,
            self.command,
            self.args,
            self.api_version,
        )


class User:
    def __init__(
        self,
        *,
        name: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        token: Optional[str] = None,
        client_cert_path: Optional[str] = None,
        client_key_path: Optional[str] = None,
        client_cert_data: Optional[str] = None,
        client_key_data: Optional[str] = None,
        exec: Optional[ExecConfig] = None,
    ) -> None:
        self.name = name
        self.username = username
        self.password = password
        self.token = token
        self.client_cert_path = client_cert_path
        self.client_key_path = client_key_path
        self.client_cert_data = client_cert_data
        self.client_key_data = client_key_data
        self.exec = exec

    def __repr__(self) -> str:
        return (
            "<%s name=%r, username=%r, password=%s, token=%s, "
            "client_cert_path=%r, client_key_path=%r, "
            "client_cert_data=%s, client_key_data=%s, exec=%r>"
        ) % (
            self.__class__.__name__,
            self.name,
            self.username,
            disp_secret_string(self.password),
            disp_secret_string(self.token),
            self.client_cert_path,
            self.client_key_path,
            disp_secret_blob(self.client_cert_data),
            disp_secret_blob(self.client_key_data),
            self.exec,
        )


class Cluster:
    def __init__(
        self,
        *,
        name: str,
        server: str,
        ca_cert_path: Optional[str] = None,
        ca_cert_data: Optional[str] = None,
        insecure_skip_tls_verify: bool = False,
    ) -> None:
        self.name = name
        self.server = server.rstrip("/")
        self.ca_cert_path = ca_cert_path
        self.ca_cert_data = ca_cert_data
        self.insecure_skip_tls_verify = insecure_skip_tls_verify

    def __repr__(self) -> str:
        return "<%s name=%r, server=%r, ca_cert_path=%r, ca_cert_data=%s>" % (
            self.__class__.__name__,
            self.name,
            self.server,
            self.ca_cert_path,
            disp_secret_blob(self.ca_cert_data),
        )


class Context:
    def __init__(
        self,
        *,
        name: str,
        user: User,
        cluster: Cluster,
        namespace: Optional[str] = None,
    ) -> None:
        self.name = name
        self.user = user
        self.cluster = cluster
        self.namespace = namespace

        # host.company.com -> host
        self.short_name = name.split(".")[0]

    def __repr__(self) -> str:
        return "<%s name=%r, user=%r, cluster=%r, namespace=%r>" % (
            self.__class__.__name__,
            self.name,
            self.user,
            self.cluster,
            self.namespace,
        )

    def create_ssl_context(self) -> ssl.SSLContext:
        kwargs: Dict[str, Any] = {}

        if self.cluster.ca_cert_path:
            kwargs["cafile"] = self.cluster.ca_cert_path

        elif self.cluster.ca_cert_data:
            kwargs["cadata"] = base64.b64decode(self.cluster.ca_cert_data).decode()

        ssl_context = ssl.create_default_context(**kwargs)

        if self.cluster.insecure_skip_tls_verify:
            ssl_context.check_hostname = False
            ssl_context.verify_mode = ssl.CERT_NONE

        # The ssl module only loads certs from files, so blobs are written to
        # a private temp dir that is removed again once they are loaded.
        if self.user.client_cert_data and self.user.client_key_data:
            with tempfile.TemporaryDirectory(prefix="kopenapi.") as tempdir_name:
                cert_file = os.path.join(tempdir_name, "client.crt")
                key_file = os.path.join(tempdir_name, "client.key")

                for filepath, blob in (
                    (cert_file, self.user.client_cert_data),
                    (key_file, self.user.client_key_data),
                ):
                    fd = os.open(filepath, os.O_WRONLY | os.O_CREAT, 0o600)
                    with os.fdopen(fd, "wb") as fl:
                        fl.write(base64.b64decode(blob))

                ssl_context.load_cert_chain(certfile=cert_file, keyfile=key_file)

        elif self.user.client_cert_path and self.user.client_key_path:
            ssl_context.load_cert_chain(
                certfile=self.user.client_cert_path,
                keyfile=self.user.client_key_path,
            )

        return ssl_context


class KubeConfigCollection:
    def __init__(self) -> None:
        self.contexts: Dict[str, Context] = {}
        self.current_context: Optional[str] = None

    def add_contexts(self, contexts: Sequence[Context], current: Optional[str]) -> None:
        # NOTE: the first file to define a context name wins, like kubectl
        for context in contexts:
            self.contexts.setdefault(context.name, context)

        if self.current_context is None:
            self.current_context = current

    def get_context_names(self) -> Sequence[str]:
        return sorted(self.contexts.keys())

    def get_context(self, name: Optional[str] = None) -> Optional[Context]:
        name = name or self.current_context
        if name is None:
            return None
        return self.contexts.get(name)


class KubeConfigSelector:
    def __init__(self, *, collection: KubeConfigCollection) -> None:
        self.collection = collection

    def fnmatch_context(self, pattern: str) -> List[Context]:
        names = fnmatch.filter(self.collection.get_context_names(), pattern)
        objs = [self.collection.get_context(name) for name in names]
        return [ctx for ctx in objs if ctx]


class KubeConfigLoader:
    def __init__(
        self, *, config_dir="$HOME/.kube", config_var="KUBECONFIG", logger=None
    ) -> None:
        self.config_dir = config_dir
        self.config_var = config_var
        self.logger = logger or logging.getLogger("config-loader")

    def get_candidate_files(self) -> Sequence[str]:
        # use config_var if set
        env_var = os.getenv(self.config_var)
        if env_var:
            filepaths = [fp.strip() for fp in env_var.split(os.pathsep)]
            return [fp for fp in filepaths if fp]

        # fall back on config_dir
        path = os.path.expandvars(self.config_dir)
        if not os.path.isdir(path):
            return []

        filepaths = [os.path.join(path, fn) for fn in sorted(os.listdir(path))]
        return [fp for fp in filepaths if os.path.isfile(fp)]

    def parse_exec(self, dct: Optional[Dict[str, Any]]) -> Optional[ExecConfig]:
        if not dct or not dct.get("command"):
            return None

        env = {item["name"]: item["value"] for item in dct.get("env") or []}
        return ExecConfig(
            command=dct["command"],
            args=dct.get("args") or [],
            env=env,
            api_version=dct.get("apiVersion", "client.authentication.k8s.io/v1"),
        )

    def parse_user(self, dct) -> Optional[User]:
        name = dct.get("name")
        obj = dct.get("user") or {}

        # 'name' is the only required attribute
        if not name:
            return None

        return User(
            name=name,
            username=obj.get("username"),
            password=obj.get("password"),
            token=obj.get("token"),
            client_cert_path=obj.get("client-certificate"),
            client_key_path=obj.get("client-key"),
            client_cert_data=obj.get("client-certificate-data"),
            client_key_data=obj.get("client-key-data"),
            exec=self.parse_exec(obj.get("exec")),
        )

    def parse_cluster(self, dct) -> Optional[Cluster]:
        name = dct.get("name")
        obj = dct.get("cluster") or {}
        server = obj.get("server")

        # 'name' and 'server' are required attributes
        if not (name and server):
            return None

        return Cluster(
            name=name,
            server=server,
            ca_cert_path=obj.get("certificate-authority"),
            ca_cert_data=obj.get("certificate-authority-data"),
            insecure_skip_tls_verify=bool(obj.get("insecure-skip-tls-verify")),
        )

    def parse_context(
        self, clusters: Dict[str, Cluster], users: Dict[str, User], dct
    ) -> Optional[Context]:
        name = dct.get("name")
        obj = dct.get("context") or {}
        cluster_id = obj.get("cluster")
        user_id = obj.get("user")

        # 'name', 'cluster' and 'user' are required attributes
        if not all((name, cluster_id, user_id)):
            return None

        user = users.get(user_id)
        if user is None:
            self.logger.warning(
                "When parsing context %r could not find matching user %r", name, user_id
            )

        cluster = clusters.get(cluster_id)
        if cluster is None:
            self.logger.warning(
                "When parsing context %r could not find matching cluster %r",
                name,
                cluster_id,
            )

        if user is None or cluster is None:
            return None

        return Context(
            name=name, user=user, cluster=cluster, namespace=obj.get("namespace")
        )

    def parse_document(self, dct: Any, source: str = "<string>") -> List[Context]:
        if not isinstance(dct, dict) or dct.get("kind") != "Config":
            self.logger.warning("Kube config does not have kind: Config: %s", source)
            return []

        clust_list = [self.parse_cluster(c) for c in dct.get("clusters") or []]
        clusters = {c.name: c for c in clust_list if c}

        user_list = [self.parse_user(u) for u in dct.get("users") or []]
        users = {u.name: u for u in user_list if u}

        ctx_list = [self.parse_context(clusters, users, c) for c in dct.get("contexts") or []]
        return [ctx for ctx in ctx_list if ctx]

    def load_file(self, filepath: str, collection: KubeConfigCollection) -> None:
        with open(filepath, "rb") as fl:
            try:
                dct = yaml.load(fl, Loader=yaml.SafeLoader)
            except yaml.YAMLError:
                self.logger.warning("Failed to parse kube config as yaml: %s", filepath)
                return

        contexts = self.parse_document(dct, source=filepath)
        if contexts:
            collection.add_contexts(contexts, dct.get("current-context"))

    def create_collection(self) -> KubeConfigCollection:
        collection = KubeConfigCollection()

        for filepath in self.get_candidate_files():
            if not os.path.isfile(filepath):
                self.logger.warning("Kube config does not exist: %s", filepath)
                continue
            self.load_file(filepath, collection)

        return collection


def get_selector() -> KubeConfigSelector:
    loader = KubeConfigLoader()
    collection = loader.create_collection()
    return KubeConfigSelector(collection=collection)
