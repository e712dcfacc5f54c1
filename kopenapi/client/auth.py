import json
import logging
import os
import subprocess
from datetime import datetime, timedelta
from typing import Dict, Optional

import humanize
from aiohttp import BasicAuth
from dateutil.parser import parse as parse_date

from kopenapi.client.config import Context, ExecConfig
from kopenapi.tools.timekeeping import date_now


class Credentials:
    """
    Whatever we send to prove who we are: either basic auth (which aiohttp
    takes as `auth=`) or a bearer token (which goes in a header).
    """

    def __init__(
        self,
        *,
        basic_auth: Optional[BasicAuth] = None,
        token: Optional[str] = None,
        expiry_date: Optional[datetime] = None,
    ) -> None:
        self.basic_auth = basic_auth
        self.token = token
        self.expiry_date = expiry_date

    def __repr__(self) -> str:
        return "<%s basic_auth=%s, token=%s, expiry_date=%r>" % (
            self.__class__.__name__,
            "yes" if self.basic_auth else "no",
            "yes" if self.token else "no",
            self.expiry_date,
        )

    def has_expired(self) -> bool:
        if self.expiry_date is None:
            return False

        # Refresh a few minutes early, the API server's clock may be ahead
        # of ours.
        return date_now() >= (self.expiry_date - timedelta(minutes=5))

    def get_headers(self) -> Dict[str, str]:
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {}


class ExecCredentialError(Exception):
    def __init__(self, exit_code: int, stdout: str, stderr: str) -> None:
        super().__init__()

        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr

    def __repr__(self) -> str:
        return "%s(exit_code=%r, stderr=%r)" % (
            self.__class__.__name__,
            self.exit_code,
            self.stderr,
        )

    def __str__(self) -> str:
        return self.__repr__()


def parse_exec_credential(stdout: str) -> Credentials:
    doc = json.loads(stdout)

    status = doc.get("status") or {}
    token = status.get("token")

    expiry_date = None
    expiration_timestamp = status.get("expirationTimestamp")
    if expiration_timestamp:
        expiry_date = parse_date(expiration_timestamp)

    return Credentials(token=token, expiry_date=expiry_date)


class AuthProvider:
    def __init__(self, context: Context, logger=None) -> None:
        self.context = context
        self.logger = logger or logging.getLogger("auth")

        self.credentials: Optional[Credentials] = None  # lazy attribute

    def run_exec(self, cmd: ExecConfig) -> Credentials:
        args = [cmd.command] + cmd.args

        environ = dict(os.environ)
        environ.update(cmd.env)

        proc = subprocess.Popen(
            args=args,
            env=environ,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )

        stdout_bytes, stderr_bytes = proc.communicate()
        stdout, stderr = stdout_bytes.decode(), stderr_bytes.decode()

        if proc.returncode != 0:
            self.logger.error(
                "Failed to obtain exec credentials:"
                "\nexit_code: %s\nstdout: <<<%s>>>\nstderr: <<<%s>>>",
                proc.returncode,
                stdout.strip(),
                stderr.strip(),
            )
            raise ExecCredentialError(proc.returncode, stdout, stderr)

        credentials = parse_exec_credential(stdout)

        if credentials.expiry_date is not None:
            time_left = humanize.naturaldelta(credentials.expiry_date - date_now())
            self.logger.info(
                "[%s] Successfully obtained exec credentials valid until: %s, "
                "will expire in: %s",
                self.context.short_name,
                credentials.expiry_date,
                time_left,
            )

        return credentials

    def create_credentials(self) -> Credentials:
        user = self.context.user

        if user.username and user.password:
            return Credentials(
                basic_auth=BasicAuth(login=user.username, password=user.password)
            )

        if user.token:
            return Credentials(token=user.token)

        if user.exec:
            return self.run_exec(user.exec)

        # client certificates (if any) live in the ssl context
        return Credentials()

    def get_credentials(self) -> Credentials:
        if self.credentials is None or self.credentials.has_expired():
            self.credentials = self.create_credentials()

        return self.credentials
