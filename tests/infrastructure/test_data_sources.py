"""Tests for the identity credential and KMS data key data sources."""

import pytest

from stratus.domain.errors import ProviderError, ValidationError, api_error_for
from stratus.domain.value_objects.resource_data import ResourceData
from stratus.infrastructure.data_sources.identity_credential_v3 import IdentityCredentialV3
from stratus.infrastructure.data_sources.kms_data_key_v1 import KMSDataKeyV1

CREDENTIALS = "v3.0/OS-CREDENTIAL/credentials"
DATAKEY = "v1.0/proj/kms/create-datakey"


def _data(source, config=None):
    return ResourceData(source.type_name, source.schema, config)


class TestIdentityCredential:
    @pytest.mark.asyncio
    async def test_project_credentials(self, fake_api):
        fake_api.route("GET", "iam", CREDENTIALS, {"credentials": [
            {"user_id": "u-1", "access": "AK1", "status": "active", "create_time": "2024-01-01", "description": ""},
            {"user_id": "u-2", "access": "AK2", "status": "inactive", "create_time": "2024-02-01", "description": "ci"},
        ]})
        source = IdentityCredentialV3(fake_api)
        d = _data(source)

        await source.read(d)

        assert d.id == "proj"
        assert fake_api.calls[0]["params"] is None
        assert [c["access"] for c in d.to_state()["credentials"]] == ["AK1", "AK2"]

    @pytest.mark.asyncio
    async def test_user_filter(self, fake_api):
        fake_api.route("GET", "iam", CREDENTIALS, {"credentials": []})
        source = IdentityCredentialV3(fake_api)
        d = _data(source, {"user_id": "u-1"})

        await source.read(d)

        assert d.id == "u-1"
        assert fake_api.calls[0]["params"] == {"user_id": "u-1"}
        assert d.to_state()["credentials"] == []

    @pytest.mark.asyncio
    async def test_api_error(self, fake_api):
        fake_api.route("GET", "iam", CREDENTIALS, api_error_for(403, "GET", CREDENTIALS))
        source = IdentityCredentialV3(fake_api)
        with pytest.raises(ProviderError, match="AK/SK"):
            await source.read(_data(source))


class TestKMSDataKey:
    @pytest.mark.asyncio
    async def test_generates_key(self, fake_api):
        fake_api.route("POST", "kms", DATAKEY, {"plain_text": "00ff", "cipher_text": "c1ph3r"})
        source = KMSDataKeyV1(fake_api)
        d = _data(source, {"key_id": "cmk-1", "datakey_length": "512", "encryption_context": '{"app": "web"}'})

        await source.read(d)

        body = fake_api.requests("POST")[0]["json"]
        assert body == {"key_id": "cmk-1", "datakey_length": "512", "encryption_context": {"app": "web"}}
        state = d.to_state()
        assert state["plain_text"] == "00ff"
        assert state["cipher_text"] == "c1ph3r"
        assert d.id

    @pytest.mark.asyncio
    async def test_invalid_encryption_context(self, fake_api):
        source = KMSDataKeyV1(fake_api)
        d = _data(source, {"key_id": "cmk-1", "datakey_length": "512", "encryption_context": "{not json"})
        with pytest.raises(ValidationError, match="encryption_context"):
            await source.read(d)
        assert fake_api.calls == []

    def test_plain_text_is_sensitive(self):
        assert KMSDataKeyV1.schema["plain_text"].sensitive
