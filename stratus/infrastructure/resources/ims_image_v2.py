"""
Image Management Service image (ims_image_v2)

Domain Logic:
- Images are built by an asynchronous job, either from an ECS instance or
  from an image file in object storage; the job entity carries the image id
- Name and tags are updated in place with a JSON-patch request
- Deletion is done once the image answers 404
"""

from __future__ import annotations
import logging
from typing import Any

from stratus.domain.errors import ApiError, ProviderError, ValidationError
from stratus.domain.services.state_waiter import DELETED
from stratus.domain.value_objects.attribute import Attribute, BOOL, INT, MAP
from stratus.domain.value_objects.resource_data import ResourceData
from stratus.domain.value_objects.timeouts import ResourceTimeouts
from stratus.infrastructure.resources.base import BaseResource

logger = logging.getLogger(__name__)

SERVICE = "ims"

JOB_SUCCESS = "SUCCESS"
JOB_FAIL = "FAIL"
JOB_PENDING = ("INIT", "RUNNING")

JSON_PATCH = "application/openstack-images-v2.1-json-patch"


def _image_tags(d: ResourceData) -> list[dict[str, str]]:
    return [{"key": k, "value": v} for k, v in (d.get("image_tags") or {}).items()]


def _tag_list(tags: dict[str, str]) -> list[str]:
    return [f"{k}.{v}" for k, v in tags.items()]


class IMSImageV2(BaseResource):
    type_name = "ims_image_v2"
    importable = True
    default_timeouts = ResourceTimeouts(create=600.0, update=600.0, delete=180.0)
    schema = {
        "name": Attribute(required=True),
        "description": Attribute(optional=True, force_new=True),
        "image_tags": Attribute(MAP, optional=True),
        "max_ram": Attribute(INT, optional=True, force_new=True),
        "min_ram": Attribute(INT, optional=True),
        "instance_id": Attribute(
            optional=True, force_new=True, conflicts_with=("image_url",)
        ),
        "image_url": Attribute(
            optional=True,
            force_new=True,
            conflicts_with=("instance_id",),
            required_with=("min_disk",),
        ),
        "min_disk": Attribute(INT, optional=True, conflicts_with=("instance_id",)),
        "os_version": Attribute(optional=True, force_new=True),
        "is_config": Attribute(BOOL, optional=True, force_new=True, default=False),
        "cmk_id": Attribute(optional=True, force_new=True),
        "type": Attribute(
            optional=True,
            force_new=True,
            choices=("ECS", "FusionCompute", "BMS", "Ironic"),
            case_insensitive=True,
        ),
        "visibility": Attribute(computed=True),
        "data_origin": Attribute(computed=True),
        "disk_format": Attribute(computed=True),
        "image_size": Attribute(computed=True),
    }

    def validate(self, d: ResourceData) -> None:
        super().validate(d)
        config = d.config
        if not config.get("instance_id") and not config.get("image_url"):
            raise ValidationError("Either 'instance_id' or 'image_url' must be specified")

    def _create_body(self, d: ResourceData) -> dict[str, Any]:
        body: dict[str, Any] = {"name": d.get("name")}
        optional = ["description", "max_ram", "min_ram"]
        if d.get("instance_id"):
            body["instance_id"] = d.get("instance_id")
        else:
            body["image_url"] = d.get("image_url")
            body["min_disk"] = d.get("min_disk")
            body["is_config"] = bool(d.get("is_config"))
            optional += ["os_version", "cmk_id", "type"]
        for key in optional:
            value, ok = d.get_ok(key)
            if ok:
                body[key] = value
        tags = _image_tags(d)
        if tags:
            body["image_tags"] = tags
        return body

    async def wait_for_job(self, job_id: str, timeout: float) -> dict[str, Any]:
        async def refresh():
            job = await self.client.get(SERVICE, f"v1/{self.client.project_id}/jobs/{job_id}")
            status = job.get("status", "")
            if status == JOB_FAIL:
                reason = job.get("fail_reason") or "unknown reason"
                raise ProviderError(f"image job {job_id} failed: {reason}")
            return job, status

        return await self.wait_for(
            refresh,
            target=(JOB_SUCCESS,),
            pending=JOB_PENDING,
            timeout=timeout,
            description=f"image job {job_id}",
        )

    async def create(self, d: ResourceData) -> None:
        body = self._create_body(d)
        logger.debug("Creating image: %s", body)
        try:
            response = await self.client.post(SERVICE, "v2/cloudimages/action", json=body)
        except ApiError as e:
            raise ProviderError(f"error creating image: {e}") from e
        job_id = response["job_id"]
        logger.info("IMS job ID: %s", job_id)

        job = await self.wait_for_job(job_id, d.timeouts.create)
        image_id = (job.get("entities") or {}).get("image_id")
        if not isinstance(image_id, str) or not image_id:
            raise ProviderError(f"image job {job_id} finished without an image id")
        logger.info("IMS ID: %s", image_id)
        d.set_id(image_id)
        await self.read(d)

    async def read(self, d: ResourceData) -> None:
        try:
            body = await self.client.get(
                SERVICE, "v2/cloudimages", params={"id": d.id, "limit": 1}
            )
        except ApiError as e:
            raise ProviderError(f"unable to query image {d.id}: {e}") from e
        images = [img for img in body.get("images") or [] if img.get("id") == d.id]
        if not images:
            logger.info("%s %s no longer exists, removing from state", self.type_name, d.id)
            d.set_id("")
            return
        image = images[0]
        logger.debug("Retrieved image %s: %s", d.id, image)
        d.set("name", image.get("name"))
        d.set("visibility", image.get("visibility"))
        d.set("data_origin", image.get("__data_origin"))
        d.set("disk_format", image.get("disk_format"))
        d.set("image_size", image.get("__image_size"))

    async def update(self, d: ResourceData) -> None:
        patch = []
        if d.has_change("name"):
            patch.append({"op": "replace", "path": "/name", "value": d.get("name")})
        if d.has_change("image_tags"):
            patch.append(
                {"op": "replace", "path": "/tags", "value": _tag_list(d.get("image_tags") or {})}
            )
        if patch:
            logger.debug("Updating image %s with %s", d.id, patch)
            try:
                await self.client.patch(
                    SERVICE,
                    f"v2/images/{d.id}",
                    json=patch,
                    headers={"Content-Type": JSON_PATCH},
                )
            except ApiError as e:
                raise ProviderError(f"error updating image: {e}") from e
        await self.read(d)

    async def delete(self, d: ResourceData) -> None:
        image_id = d.id
        try:
            await self.client.delete(SERVICE, f"v2/images/{image_id}")
        except ApiError as e:
            raise ProviderError(f"error deleting image {image_id}: {e}") from e

        async def refresh():
            image = await self.client.get(SERVICE, f"v2/images/{image_id}")
            return image, image.get("status", "active")

        await self.wait_for(
            refresh,
            target=(DELETED,),
            timeout=d.timeouts.delete,
            description=f"image {image_id}",
        )
        d.set_id("")
