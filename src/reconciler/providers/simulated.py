"""In-process stand-in for a remote infrastructure API."""

import json
import os
import tempfile
import threading
import uuid
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from ..ingest.models import ResourceAddress
from ..registry.base import ResourceAdapter
from ..utils.errors import RemoteOperationError
from ..utils.logging import get_logger

logger = get_logger("providers.simulated")

ComputeOutputs = Callable[["SimulatedCloud", str, Dict[str, Any]], Dict[str, Any]]
ValidateInputs = Callable[["SimulatedCloud", Dict[str, Any]], List[str]]


class SimulatedCloud:
    """
    Object store keyed by generated ids such as 'vpc-0a1b2c3d4e5f6a7b8'.

    Objects that reference other ids (attributes named *_id or *_ids) are
    checked on create, and an object that is still referenced cannot be
    deleted. When store_path is set the objects survive between processes.
    """

    def __init__(self, store_path: Optional[str] = None):
        self.store_path = Path(store_path) if store_path else None
        self._lock = threading.RLock()
        self._objects: Dict[str, Dict[str, Any]] = {}
        if self.store_path and self.store_path.exists():
            with open(self.store_path, 'r', encoding='utf-8') as f:
                self._objects = json.load(f)
            logger.debug(f"Loaded {len(self._objects)} simulated objects from {self.store_path}")

    def put(self, prefix: str, attributes: Dict[str, Any]) -> str:
        """Store a new object and return its id."""
        with self._lock:
            missing = [ref for ref in _referenced_ids(attributes) if ref not in self._objects]
            if missing:
                raise RemoteOperationError(f"InvalidID.NotFound: {', '.join(missing)} does not exist")
            object_id = f"{prefix}-{uuid.uuid4().hex[:17]}"
            self._objects[object_id] = dict(attributes)
            self._persist()
            return object_id

    def get(self, object_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            found = self._objects.get(object_id)
            return dict(found) if found is not None else None

    def update(self, object_id: str, attributes: Dict[str, Any]) -> None:
        with self._lock:
            if object_id not in self._objects:
                raise RemoteOperationError(f"InvalidID.NotFound: {object_id} does not exist")
            missing = [ref for ref in _referenced_ids(attributes) if ref not in self._objects]
            if missing:
                raise RemoteOperationError(f"InvalidID.NotFound: {', '.join(missing)} does not exist")
            self._objects[object_id] = dict(attributes)
            self._persist()

    def delete(self, object_id: str) -> None:
        """Delete an object; deleting a missing object is a no-op."""
        with self._lock:
            if object_id not in self._objects:
                return
            holders = [oid for oid, attrs in self._objects.items() if object_id in _referenced_ids(attrs)]
            if holders:
                raise RemoteOperationError(
                    f"DependencyViolation: {object_id} is still referenced by {', '.join(sorted(holders))}",
                    retryable=True
                )
            del self._objects[object_id]
            self._persist()

    def ids(self, prefix: Optional[str] = None) -> List[str]:
        with self._lock:
            return sorted(oid for oid in self._objects if prefix is None or oid.startswith(f"{prefix}-"))

    def _persist(self) -> None:
        if self.store_path is None:
            return
        self.store_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.store_path.name}.", dir=str(self.store_path.parent))
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            json.dump(self._objects, f, indent=2, sort_keys=True)
        os.replace(tmp_name, self.store_path)


class SimulatedAdapter(ResourceAdapter):
    """Adapter that keeps a resource type's objects in a SimulatedCloud."""

    def __init__(
        self,
        cloud: SimulatedCloud,
        prefix: str,
        compute: Optional[ComputeOutputs] = None,
        validator: Optional[ValidateInputs] = None
    ):
        self.cloud = cloud
        self.prefix = prefix
        self.compute = compute
        self.validator = validator

    def validate(self, address: ResourceAddress, inputs: Dict[str, Any]) -> List[str]:
        if self.validator is None:
            return []
        return self.validator(self.cloud, inputs)

    def create(self, address: ResourceAddress, inputs: Dict[str, Any]) -> Dict[str, Any]:
        object_id = self.cloud.put(self.prefix, inputs)
        logger.debug(f"{address}: created {object_id}")
        return self._outputs(object_id, inputs)

    def read(self, address: ResourceAddress, outputs: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        object_id = outputs.get("id")
        if not object_id or self.cloud.get(object_id) is None:
            return None
        return dict(outputs)

    def update(self, address: ResourceAddress, inputs: Dict[str, Any], outputs: Dict[str, Any]) -> Dict[str, Any]:
        object_id = outputs["id"]
        self.cloud.update(object_id, inputs)
        refreshed = dict(outputs)
        refreshed.update(self._outputs(object_id, inputs, previous=outputs))
        return refreshed

    def destroy(self, address: ResourceAddress, outputs: Dict[str, Any]) -> None:
        object_id = outputs.get("id")
        if object_id:
            self.cloud.delete(object_id)
            logger.debug(f"{address}: deleted {object_id}")

    def _outputs(self, object_id: str, inputs: Dict[str, Any], previous: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        outputs = {
            "id": object_id,
            "arn": f"arn:aws:ec2:simulated:000000000000:{self.prefix}/{object_id}",
        }
        if self.compute is not None:
            computed = self.compute(self.cloud, object_id, inputs)
            if previous:
                # provider-assigned values stay stable across in-place updates
                computed = {k: previous.get(k, v) for k, v in computed.items()}
            outputs.update(computed)
        return outputs


def _referenced_ids(attributes: Dict[str, Any]) -> List[str]:
    refs: List[str] = []
    for name, value in attributes.items():
        if name.endswith("_id") and isinstance(value, str):
            refs.append(value)
        elif name.endswith("_ids") and isinstance(value, list):
            refs.extend(v for v in value if isinstance(v, str))
    return refs
