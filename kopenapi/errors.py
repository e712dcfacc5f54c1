from typing import Any, Optional

from kopenapi.tools.repr import disp_fragment


class KubeOpenApiError(Exception):
    pass


class RequestError(KubeOpenApiError):
    pass


class MissingParameter(RequestError):
    def __init__(self, name: str, template: Optional[str] = None) -> None:
        super().__init__(name)

        self.name = name
        self.template = template

    def __repr__(self) -> str:
        return "%s(name=%r, template=%r)" % (
            self.__class__.__name__,
            self.name,
            self.template,
        )

    def __str__(self) -> str:
        if self.template:
            return "missing parameter %r for %s" % (self.name, self.template)
        return "missing parameter %r" % self.name


class InvalidParameter(RequestError, TypeError):
    "A parameter, optional record or body of the wrong type or kind"


class InvalidBody(RequestError, ValueError):
    pass


class UnexpectedParameter(RequestError):
    def __init__(self, name: str, template: str) -> None:
        super().__init__(name)

        self.name = name
        self.template = template

    def __repr__(self) -> str:
        return "%s(name=%r, template=%r)" % (
            self.__class__.__name__,
            self.name,
            self.template,
        )

    def __str__(self) -> str:
        return "unexpected parameter %r for %s" % (self.name, self.template)


class DecodeError(KubeOpenApiError):
    """
    A response body (or one watch event) did not have the shape the
    operation documents. `fragment` is the offending piece of the payload and
    `path` locates it inside the document, eg. `spec.containers[0].name`.
    """

    def __init__(self, message: str, *, fragment: Any = None, path: str = "") -> None:
        super().__init__(message)

        self.message = message
        self.fragment = fragment
        self.path = path

    def __repr__(self) -> str:
        return "%s(message=%r, path=%r, fragment=%s)" % (
            self.__class__.__name__,
            self.message,
            self.path,
            disp_fragment(self.fragment),
        )

    def __str__(self) -> str:
        location = f" at {self.path}" if self.path else ""
        return "%s%s: %s" % (self.message, location, disp_fragment(self.fragment))


class OperationNotSupported(KubeOpenApiError):
    def __init__(self, kind: str, verb: str, reason: str) -> None:
        super().__init__(reason)

        self.kind = kind
        self.verb = verb
        self.reason = reason

    def __repr__(self) -> str:
        return "%s(kind=%r, verb=%r, reason=%r)" % (
            self.__class__.__name__,
            self.kind,
            self.verb,
            self.reason,
        )

    def __str__(self) -> str:
        return self.reason
