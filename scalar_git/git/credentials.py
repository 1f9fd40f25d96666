"""git credential helper protocol: fill, approve and reject.

Each exchange writes ``key=value`` lines terminated by a blank line to
``git credential <verb>`` and, for fill, reads ``key=value`` lines back.
Credentials are only relayed, never stored here.
"""

from __future__ import annotations

import logging
from typing import NamedTuple

from scalar_git.git.constants import GitConfig
from scalar_git.git.line_scanner import LineScanner
from scalar_git.git.process import GitProcess
from scalar_git.util.tracing import EventMetadata, Tracer


class CredentialFill(NamedTuple):
    success: bool
    username: str | None
    password: str | None
    error: str | None = None


class CredentialUpdate(NamedTuple):
    success: bool
    error: str | None = None


def credential_verb_args(verb: str) -> tuple[str, ...]:
    return ("-c", f"{GitConfig.CREDENTIAL_USE_HTTP_PATH}=true", "credential", verb)


def parse_value(contents: str | None, prefix: str) -> str | None:
    """Value following the first ``prefix`` in ``contents``, up to end of line."""
    return LineScanner(contents).value_for(prefix)


class GitCredentialBridge:
    """Credential store backed by git's configured credential helpers."""

    def __init__(self, git_process: GitProcess) -> None:
        self._git = git_process

    def try_get_credential(self, tracer: Tracer, repo_url: str) -> CredentialFill:
        with tracer.start_activity("TryGetCredential", logging.INFO) as activity:
            stdin_payload = f"url={repo_url}\n\n"
            result = self._git.invoke_git_against_dot_git_folder(
                credential_verb_args("fill"),
                write_stdin=lambda writer: writer.write(stdin_payload),
            )

            if result.exit_code_is_failure:
                activity.related_warning(
                    "Git could not get credentials: " + result.errors,
                    {"RepoUrl": repo_url},
                )
                activity.stop({"Success": False})
                return CredentialFill(False, None, None, result.errors)

            username = parse_value(result.output, "username=")
            password = parse_value(result.output, "password=")
            success = username is not None and password is not None

            metadata: EventMetadata = {"Success": success}
            if not success:
                metadata["Output"] = _redact_password(result.output)
            activity.stop(metadata)

            if not success:
                return CredentialFill(
                    False,
                    username,
                    password,
                    "git credential fill did not return both a username and a password",
                )
            return CredentialFill(True, username, password)

    def try_get_certificate_password(
        self, tracer: Tracer, certificate_path: str
    ) -> CredentialFill:
        """Ask the credential helper for a client certificate's password.

        The request is ``protocol=cert``, ``path=<http.sslCert>`` and an empty
        ``username=``; only ``password=`` is expected back.
        """
        with tracer.start_activity("TryGetCertificatePassword", logging.INFO) as activity:
            stdin_payload = f"protocol=cert\npath={certificate_path}\nusername=\n\n"
            result = self._git.invoke_git_against_dot_git_folder(
                ("credential", "fill"),
                write_stdin=lambda writer: writer.write(stdin_payload),
            )

            if result.exit_code_is_failure:
                activity.related_warning(
                    "Git could not get credentials: " + result.errors,
                    {"CertificatePath": certificate_path},
                )
                activity.stop({"Success": False, "CertificatePath": certificate_path})
                return CredentialFill(False, None, None, result.errors)

            password = parse_value(result.output, "password=")
            success = password is not None

            metadata: EventMetadata = {
                "Success": success,
                "CertificatePath": certificate_path,
            }
            if not success:
                metadata["Output"] = result.output
            activity.stop(metadata)

            if not success:
                return CredentialFill(
                    False, None, None, "git credential fill did not return a password"
                )
            return CredentialFill(True, None, password)

    def try_store_credential(
        self, tracer: Tracer, repo_url: str, username: str, password: str
    ) -> CredentialUpdate:
        stdin_payload = f"url={repo_url}\nusername={username}\npassword={password}\n\n"
        result = self._git.invoke_git_outside_enlistment(
            credential_verb_args("approve"),
            write_stdin=lambda writer: writer.write(stdin_payload),
        )

        if result.exit_code_is_failure:
            tracer.related_warning("Git could not approve credentials: " + result.errors)
            return CredentialUpdate(False, result.errors)
        return CredentialUpdate(True)

    def try_delete_credential(
        self,
        tracer: Tracer,
        repo_url: str,
        username: str | None = None,
        password: str | None = None,
    ) -> CredentialUpdate:
        """Reject the stored credential for ``repo_url``.

        Only ``url=`` is sent. Helpers may use username/password to check they
        erase the matching credential, but Git Credential Manager ignores the
        rejection of dev.azure.com credentials when they are present, so they
        are accepted here and deliberately left out.
        """
        stdin_payload = f"url={repo_url}\n\n"
        result = self._git.invoke_git_outside_enlistment(
            credential_verb_args("reject"),
            write_stdin=lambda writer: writer.write(stdin_payload),
        )

        if result.exit_code_is_failure:
            tracer.related_warning("Git could not reject credentials: " + result.errors)
            return CredentialUpdate(False, result.errors)
        return CredentialUpdate(True)


def _redact_password(output: str) -> str:
    password = parse_value(output, "password=")
    if not password:
        return output
    return output.replace(f"password={password}", "password=*****")
