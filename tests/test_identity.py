"""Tests for identity resolution"""
from unittest.mock import Mock

import pytest

from storefront.errors import IdentityUnavailable
from storefront.identity import Identity, SupabaseIdentityProvider


def test_identity_owner():
    assert Identity.anonymous().owner == "guest"
    assert Identity.authenticated("me@test.com").owner == "me@test.com"
    with pytest.raises(ValueError):
        Identity.authenticated("")


@pytest.mark.asyncio
async def test_supabase_provider_returns_email(mock_supabase_client):
    """Test resolving the user behind a JWT"""
    mock_supabase_client.auth.get_user.return_value = Mock(user=Mock(email="me@test.com"))
    provider = SupabaseIdentityProvider(mock_supabase_client, "jwt-token")

    identity = await provider.current_identity()

    mock_supabase_client.auth.get_user.assert_awaited_once_with("jwt-token")
    assert identity == Identity.authenticated("me@test.com")


@pytest.mark.asyncio
async def test_supabase_provider_without_token(mock_supabase_client):
    provider = SupabaseIdentityProvider(mock_supabase_client)

    with pytest.raises(IdentityUnavailable):
        await provider.current_identity()
    mock_supabase_client.auth.get_user.assert_not_called()


@pytest.mark.asyncio
async def test_supabase_provider_wraps_auth_errors(mock_supabase_client):
    mock_supabase_client.auth.get_user.side_effect = RuntimeError("jwt expired")
    provider = SupabaseIdentityProvider(mock_supabase_client, "jwt-token")

    with pytest.raises(IdentityUnavailable):
        await provider.current_identity()


@pytest.mark.asyncio
async def test_supabase_provider_no_user(mock_supabase_client):
    mock_supabase_client.auth.get_user.return_value = None
    provider = SupabaseIdentityProvider(mock_supabase_client, "jwt-token")

    with pytest.raises(IdentityUnavailable):
        await provider.current_identity()


def test_login_url(mock_supabase_client):
    provider = SupabaseIdentityProvider(mock_supabase_client, provider="github")

    url = provider.login_url("https://shop.test/cart?x=1")

    assert url.endswith(
        "/auth/v1/authorize?provider=github&redirect_to=https%3A%2F%2Fshop.test%2Fcart%3Fx%3D1"
    )
