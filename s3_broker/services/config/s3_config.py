from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar, Optional


@dataclass(frozen=True)
class S3Config:
    """Runtime configuration for the bucket lifecycle service.

    `policy_template` is the default bucket policy applied on create when the
    request does not carry its own. It is a Jinja2 template rendered with the
    bucket's own fields, e.g. ``"Resource": "{{ arn }}/*"``.
    """

    region_name: Optional[str] = None
    endpoint_url: Optional[str] = None
    _DEFAULT_PARTITION: ClassVar[str] = "aws"
    partition: str = _DEFAULT_PARTITION
    policy_template: str = ""
    log_level: str = "INFO"

    @staticmethod
    def _read_policy_template() -> str:
        inline = os.getenv("S3_BUCKET_POLICY")
        if inline:
            return inline

        policy_file = os.getenv("S3_BUCKET_POLICY_FILE")
        if not policy_file:
            return ""

        path = Path(policy_file)
        if not path.exists() or not path.is_file():
            raise ValueError(f"S3_BUCKET_POLICY_FILE does not point to a file: {policy_file}")
        return path.read_text(encoding="utf-8")

    @staticmethod
    def from_env() -> "S3Config":
        region_name = os.getenv("AWS_REGION") or os.getenv("AWS_DEFAULT_REGION")
        endpoint_url = os.getenv("S3_ENDPOINT_URL")
        partition = (os.getenv("AWS_PARTITION") or "").strip() or S3Config._DEFAULT_PARTITION

        log_level = (os.getenv("LOG_LEVEL") or "INFO").strip().upper()
        if not isinstance(logging.getLevelName(log_level), int):
            raise ValueError(f"Invalid LOG_LEVEL; must be a logging level name (got {log_level!r})")

        return S3Config(
            region_name=region_name,
            endpoint_url=endpoint_url,
            partition=partition,
            policy_template=S3Config._read_policy_template(),
            log_level=log_level,
        )
