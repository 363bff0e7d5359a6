from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, Mapping, Protocol

from libs.artifact_upload.errors import RegistrarError
from libs.artifact_upload.logging import error, info

STORAGE_TYPE = "s3"


class ArtifactRegistrar(Protocol):
    """Service that records an artifact and hands back a URL to PUT it to."""

    def create_artifact(
        self, task_id: str, run_id: int | str, artifact_name: str, payload: Dict[str, Any]
    ) -> Mapping[str, Any]: ...


def artifact_payload(expires: datetime, content_type: str | None) -> Dict[str, Any]:
    return {"storageType": STORAGE_TYPE, "expires": expires, "contentType": content_type}


def request_put_url(
    registrar: ArtifactRegistrar,
    task_id: str,
    run_id: int | str,
    artifact_name: str,
    *,
    expires: datetime,
    content_type: str | None,
) -> str:
    """
    Ask the registrar for a put URL.

    Raises:
        RegistrarError: reply has no ``putUrl``
    """
    info("upload.registrar.create_artifact", storage_type=STORAGE_TYPE, expires=expires.isoformat())
    reply = registrar.create_artifact(task_id, run_id, artifact_name, artifact_payload(expires, content_type))

    put_url = (reply or {}).get("putUrl")
    if not put_url:
        error("upload.registrar.missing_put_url")
        raise RegistrarError(f"Registrar returned no putUrl for artifact '{artifact_name}'")
    return put_url
