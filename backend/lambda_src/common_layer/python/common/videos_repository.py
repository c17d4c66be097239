from __future__ import annotations

import json
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import ClientError

from .time_utils import utc_now_iso


class RepositoryError(RuntimeError):
    """Raised when a persistence operation cannot be completed."""


def to_dynamo(value: Any) -> Any:
    """DynamoDB rejects floats; route numbers through Decimal."""
    return json.loads(json.dumps(value), parse_float=Decimal)


def from_dynamo(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {key: from_dynamo(item) for key, item in value.items()}
    if isinstance(value, list):
        return [from_dynamo(item) for item in value]
    return value


@dataclass
class VideosRepository:
    table_name: str

    def __post_init__(self) -> None:
        self._table = boto3.resource("dynamodb").Table(self.table_name)

    def put_video(self, item: Dict[str, Any]) -> None:
        try:
            self._table.put_item(Item=to_dynamo(item))
        except ClientError as exc:  # pragma: no cover - boto3 runtime
            raise RepositoryError("Failed to save video") from exc

    def get_video(self, video_id: str) -> Optional[Dict[str, Any]]:
        try:
            response = self._table.get_item(Key={"videoId": video_id})
        except ClientError as exc:  # pragma: no cover - boto3 runtime
            raise RepositoryError("Failed to load video") from exc
        item = response.get("Item")
        return from_dynamo(item) if item else None

    def update_video(self, video_id: str, attributes: Dict[str, Any]) -> None:
        attribute_names: Dict[str, str] = {}
        attribute_values: Dict[str, Any] = {":now": utc_now_iso()}
        set_parts = ["updated_at = :now"]
        for index, (key, value) in enumerate(attributes.items()):
            attribute_names[f"#f{index}"] = key
            attribute_values[f":v{index}"] = value
            set_parts.append(f"#f{index} = :v{index}")
        kwargs: Dict[str, Any] = dict(
            Key={"videoId": video_id},
            UpdateExpression="SET " + ", ".join(set_parts),
            ExpressionAttributeValues=to_dynamo(attribute_values),
        )
        if attribute_names:
            kwargs["ExpressionAttributeNames"] = attribute_names
        try:
            self._table.update_item(**kwargs)
        except ClientError as exc:  # pragma: no cover - boto3 runtime
            raise RepositoryError("Failed to update video") from exc
