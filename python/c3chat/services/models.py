"""Model listing service.

A provider contributes models iff a credential is available for it: the
user's own key (keySource "user") or the server-wide key (keySource
"server"). Providers are queried concurrently; a provider whose listing
call fails is logged and skipped so one outage never empties the list.
"""

import asyncio

from c3chat.logging import get_logger
from c3chat.schemas.keys import ModelOut
from c3chat.services.llm import NoCredentialError, ProviderGateway, ProviderInvocationError

logger = get_logger(__name__)


async def list_available_models(
    gateway: ProviderGateway, user_keys: dict[str, str]
) -> list[ModelOut]:
    """List models across enabled providers.

    Args:
        gateway: Provider registry.
        user_keys: Decrypted user keys by canonical provider name.
    """
    bound = []
    for provider in gateway.enabled_providers:
        try:
            bound.append(gateway.resolve(provider, credential=user_keys.get(provider)))
        except NoCredentialError:
            continue

    listings = await asyncio.gather(
        *(gateway.list_models(chat.provider, chat.api_key) for chat in bound),
        return_exceptions=True,
    )

    models: list[ModelOut] = []
    for chat, listing in zip(bound, listings):
        if isinstance(listing, ProviderInvocationError):
            logger.warning(
                "models.list_failed",
                provider=chat.provider,
                key_source=chat.key_source,
                error_class=listing.error_class.value,
            )
            continue
        if isinstance(listing, BaseException):
            raise listing

        models.extend(
            ModelOut(
                id=model.id,
                name=model.name,
                description=model.description,
                provider=chat.provider,
                key_source=chat.key_source,
            )
            for model in listing
        )
    return models
