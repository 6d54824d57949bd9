import aws_encryption_sdk
import base64
import hashlib
import logging

from aws_cryptographic_material_providers.mpl import AwsCryptographicMaterialProviders
from aws_cryptographic_material_providers.mpl.config import MaterialProvidersConfig
from aws_cryptographic_material_providers.mpl.models import (
    AesWrappingAlg,
    CreateRawAesKeyringInput,
)
from aws_cryptographic_material_providers.mpl.references import IKeyring
from aws_encryption_sdk import CommitmentPolicy, EncryptionSDKClient
from aws_encryption_sdk.exceptions import AWSEncryptionSDKClientError
from dataclasses import dataclass

from base.models.context import Service

from ticketing.config import TicketingConfig
from ticketing.models.exceptions import VaultError

logger = logging.getLogger(__name__)

SVC_VAULT = "svc-vault"

KEY_NAMESPACE = "TicketingTokenVault"
KEY_NAME = "DefaultEncryptionKey"


@dataclass(kw_only=True)
class SvcVault(Service):
    """
    Encrypts the OAuth tokens that the caller persists, as base64 text so
    they can be stored in plain string columns.
    """

    service_id: str = SVC_VAULT

    @staticmethod
    def initialize() -> "SvcVault":
        return SvcVaultAes.initialize()

    def encrypt_str(self, plaintext: str) -> str:
        raise NotImplementedError("Subclasses must implement SvcVault.encrypt_str")

    def decrypt_str(self, ciphertext: str) -> str:
        raise NotImplementedError("Subclasses must implement SvcVault.decrypt_str")


##
## Stub
##


STUB_PREFIX = "stub:"


@dataclass(kw_only=True)
class SvcVaultStub(SvcVault):
    """
    Reversible without a key, so tests can assert on what would be stored.
    """

    @staticmethod
    def initialize() -> "SvcVaultStub":  # pyright: ignore[reportIncompatibleMethodOverride]
        return SvcVaultStub()

    def encrypt_str(self, plaintext: str) -> str:
        return STUB_PREFIX + plaintext[::-1]

    def decrypt_str(self, ciphertext: str) -> str:
        if not ciphertext.startswith(STUB_PREFIX):
            raise VaultError("Failed to decrypt data: unknown envelope")
        return ciphertext.removeprefix(STUB_PREFIX)[::-1]


##
## AES
##


@dataclass(kw_only=True)
class SvcVaultAes(SvcVault):
    encryption_client: EncryptionSDKClient
    encryption_keyring: IKeyring

    @staticmethod
    def initialize(  # pyright: ignore[reportIncompatibleMethodOverride]
        encryption_key: str | None = None,
    ) -> "SvcVaultAes":
        encryption_key = encryption_key or TicketingConfig.vault.encryption_key
        if not encryption_key:
            raise VaultError("TICKETING_ENCRYPTION_KEY must be set")

        derived_key = hashlib.sha256(encryption_key.encode("utf-8")).digest()
        mat_prov: AwsCryptographicMaterialProviders = AwsCryptographicMaterialProviders(
            config=MaterialProvidersConfig()
        )

        keyring_input: CreateRawAesKeyringInput = CreateRawAesKeyringInput(
            key_namespace=KEY_NAMESPACE,
            key_name=KEY_NAME,
            wrapping_key=derived_key,
            wrapping_alg=AesWrappingAlg.ALG_AES256_GCM_IV12_TAG16,
        )

        return SvcVaultAes(
            encryption_client=aws_encryption_sdk.EncryptionSDKClient(
                commitment_policy=CommitmentPolicy.REQUIRE_ENCRYPT_REQUIRE_DECRYPT,
            ),
            encryption_keyring=mat_prov.create_raw_aes_keyring(input=keyring_input),
        )

    def encrypt_str(self, plaintext: str) -> str:
        try:
            encrypted_data, _header = self.encryption_client.encrypt(
                source=plaintext.encode("utf-8"),
                keyring=self.encryption_keyring,
            )
            return base64.b64encode(encrypted_data).decode("ascii")
        except AWSEncryptionSDKClientError as exc:
            raise VaultError("Failed to encrypt data") from exc

    def decrypt_str(self, ciphertext: str) -> str:
        try:
            encrypted_data = base64.b64decode(ciphertext, validate=True)
            decrypted_data, _header = self.encryption_client.decrypt(
                source=encrypted_data,
                keyring=self.encryption_keyring,
            )
            return decrypted_data.decode("utf-8")
        except (AWSEncryptionSDKClientError, ValueError) as exc:
            # ValueError also covers `binascii.Error` and `UnicodeDecodeError`.
            raise VaultError("Failed to decrypt data") from exc
