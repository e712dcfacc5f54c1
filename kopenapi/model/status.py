import re
from typing import Any, Dict, Optional

from kopenapi.errors import DecodeError
from kopenapi.model.types import RawObject


class Status:
    """
    The meta/v1 Status object the server returns for failures and for some
    successful deletes:

    {
      "kind": "Status",
      "apiVersion": "v1",
      "metadata": {},
      "status": "Failure",
      "message": "pods \"nginx\" not found",
      "reason": "NotFound",
      "details": {"name": "nginx", "kind": "pods"},
      "code": 404
    }
    """

    # too old resource version: 355452234 (358305898)
    rx_too_old = re.compile(r"too old resource version: \d+ \((\d+)\)")

    def __init__(
        self,
        *,
        status: Optional[str] = None,
        code: Optional[int] = None,
        reason: Optional[str] = None,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        raw: Optional[RawObject] = None,
    ) -> None:
        self.status = status
        self.code = code
        self.reason = reason
        self.message = message
        self.details = details or {}
        self.raw = raw or {}

    def __repr__(self) -> str:
        return "<%s status=%r, code=%r, reason=%r, message=%r>" % (
            self.__class__.__name__,
            self.status,
            self.code,
            self.reason,
            self.message,
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, Status):
            return NotImplemented
        return self.raw == other.raw

    @classmethod
    def from_dict(cls, dct: Any) -> "Status":
        if not isinstance(dct, dict):
            raise DecodeError("Status must be an object", fragment=dct)

        kind = dct.get("kind")
        if kind is not None and kind != "Status":
            raise DecodeError("Expected kind Status", fragment=kind, path="kind")

        code = dct.get("code")
        if code is not None and (not isinstance(code, int) or isinstance(code, bool)):
            raise DecodeError("Status code must be an integer", fragment=code, path="code")

        details = dct.get("details")
        if details is not None and not isinstance(details, dict):
            raise DecodeError("Status details must be an object", fragment=details, path="details")

        for key in ("status", "reason", "message"):
            value = dct.get(key)
            if value is not None and not isinstance(value, str):
                raise DecodeError("Status %s must be a string" % key, fragment=value, path=key)

        return cls(
            status=dct.get("status"),
            code=code,
            reason=dct.get("reason"),
            message=dct.get("message"),
            details=details,
            raw=dct,
        )

    def is_success(self) -> bool:
        return self.status == "Success"

    def is_failure(self) -> bool:
        return self.status == "Failure"

    def is_resource_version_too_old(self) -> bool:
        if self.code == 410 or self.reason in ("Expired", "Gone"):
            return True
        return self.rx_too_old.search(self.message or "") is not None

    def extract_resource_version(self) -> Optional[str]:
        match = self.rx_too_old.search(self.message or "")
        if match is None:
            return None
        return match.group(1)
