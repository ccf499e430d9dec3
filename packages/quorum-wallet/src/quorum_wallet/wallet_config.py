"""
Stored wallet configuration and its conversion to a MultisigPolicy.

The stored shape (camelCase, as the front end persists it):

    {
        "name": "Team Wallet",
        "description": "",
        "participants": [
            {"addressOrKeyHex": "addr_test1...", "role": 0, "name": "Alice", "participantId": "alice"},
            {"addressOrKeyHex": "stake_test1...", "role": 2, "name": "Alice", "participantId": "alice"}
        ],
        "thresholdRule": {"type": "atLeast", "required": 2},
        "network": "preprod",
        "stakeCredentialOverride": null
    }

Registration metadata documents published on chain can be read back with
`WalletConfiguration.from_metadata_document`.
"""
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from quorum_core.config import load_settings
from quorum_core.exceptions import QuorumConfigurationError

from .derivation import Network, derive_stake_address
from .keys import ParticipantKey, Role
from .native_script import AllOf, AnyOf, AtLeastOf, Sig, ThresholdKind, ThresholdRule, from_json
from .policy import MultisigPolicy, join_chunks


class ConfigModel(BaseModel):
    """Base model with common configuration."""

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert model to its stored (camelCase) form."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_dict(cls, data: dict[str, Any]):
        return cls.model_validate(data)


class ParticipantEntry(ConfigModel):
    """One configured key: an address or key in any accepted form, plus its role."""
    address_or_key_hex: str = Field(alias="addressOrKeyHex")
    role: int = Role.PAYMENT
    name: str = ""
    participant_id: Optional[str] = Field(default=None, alias="participantId")

    @field_validator("role", mode="before")
    @classmethod
    def parse_role(cls, v):
        return int(Role.parse(v))

    def to_key(self) -> ParticipantKey:
        return ParticipantKey.from_input(
            self.address_or_key_hex,
            self.role,
            display_name=self.name,
            participant_id=self.participant_id,
        )


class ThresholdRuleModel(ConfigModel):
    type: ThresholdKind = ThresholdKind.AT_LEAST
    required: Optional[int] = None

    def to_rule(self) -> ThresholdRule:
        return ThresholdRule(self.type, self.required)

    @classmethod
    def from_rule(cls, rule: ThresholdRule) -> "ThresholdRuleModel":
        return cls(type=rule.kind, required=rule.required)


class WalletConfiguration(ConfigModel):
    """Stored configuration of one multisig wallet."""
    name: str
    description: str = ""
    participants: List[ParticipantEntry] = Field(default_factory=list)
    threshold_rule: ThresholdRuleModel = Field(
        default_factory=ThresholdRuleModel, alias="thresholdRule"
    )
    network: Optional[Union[int, str]] = None
    stake_credential_override: Optional[str] = Field(default=None, alias="stakeCredentialOverride")

    def to_policy(self) -> MultisigPolicy:
        """Normalize every key and build the policy.

        Raises:
            QuorumConfigurationError: Any key, threshold or participant error.
            UnsupportedNetworkError: Unknown network.
        """
        network = self.network if self.network is not None else load_settings().default_network
        return MultisigPolicy(
            name=self.name,
            description=self.description,
            participants=[entry.to_key() for entry in self.participants],
            threshold=self.threshold_rule.to_rule(),
            network=Network.parse(network),
            stake_credential_override=self.stake_credential_override or None,
        )

    @classmethod
    def from_policy(cls, policy: MultisigPolicy) -> "WalletConfiguration":
        override = policy.stake_credential_override
        return cls(
            name=policy.name,
            description=policy.description,
            participants=[
                ParticipantEntry(
                    address_or_key_hex=key.key_hash_hex,
                    role=int(key.role),
                    name=key.display_name,
                    participant_id=key.participant_id,
                )
                for key in policy.participants
            ],
            threshold_rule=ThresholdRuleModel.from_rule(policy.threshold),
            network=policy.network.name.lower(),
            stake_credential_override=_override_text(override, policy.network),
        )

    @classmethod
    def from_metadata_document(
        cls,
        document: Mapping[Any, Any],
        network: Union[Network, int, str],
        stake_credential_override: Optional[str] = None,
        label: Optional[int] = None,
    ) -> "WalletConfiguration":
        """Rebuild a configuration from a registration metadata document.

        Accepts the plain document or the auxiliary metadata wrapping it
        under `label`. Keys are recovered role by role from the script
        leaves, so their order (and therefore every script hash) matches
        the published policy. Keys of roles that had no script are not
        recoverable. Keys pair into participants through their
        `participantId` entries; without them the policy falls back to
        pairing by key count.
        """
        if label is None:
            label = load_settings().metadata_label
        if label in document or str(label) in document:
            document = document.get(label, document.get(str(label)))

        participants = {
            key_hash.lower(): entry or {}
            for key_hash, entry in (document.get("participants") or {}).items()
        }
        scripts = {str(k): v for k, v in (document.get("scripts") or {}).items()}
        if "0" not in scripts:
            raise QuorumConfigurationError("Metadata document has no payment script")

        role_order = [str(int(r)) for r in document.get("types") or []]
        role_order += [r for r in scripts if r not in role_order]

        entries: List[ParticipantEntry] = []
        rule: Optional[ThresholdRule] = None
        for role_key in role_order:
            if role_key not in scripts:
                continue
            script = from_json(scripts[role_key])
            script_rule = _rule_of(script)
            if role_key == "0":
                rule = script_rule
            for leaf in script.scripts:
                if not isinstance(leaf, Sig):
                    raise QuorumConfigurationError("Nested scripts are not multisig policies")
                entry = participants.get(leaf.key_hash.hex(), {})
                entries.append(
                    ParticipantEntry(
                        address_or_key_hex=leaf.key_hash.hex(),
                        role=int(role_key),
                        name=join_chunks(entry.get("name", "")) or "",
                        participant_id=join_chunks(entry.get("participantId")) or None,
                    )
                )

        return cls(
            name=join_chunks(document.get("name", "")),
            description=join_chunks(document.get("description", "")) or "",
            participants=entries,
            threshold_rule=ThresholdRuleModel.from_rule(rule),
            network=Network.parse(network).name.lower(),
            stake_credential_override=stake_credential_override,
        )


def _override_text(override, network: Network) -> Optional[str]:
    if override is None:
        return None
    # Script credentials only survive as a reward address
    return derive_stake_address(override, network) if override.is_script else override.hex


def _rule_of(script: Any) -> ThresholdRule:
    if isinstance(script, AllOf):
        return ThresholdRule.all()
    if isinstance(script, AnyOf):
        return ThresholdRule.any()
    if isinstance(script, AtLeastOf):
        return ThresholdRule.at_least(script.required)
    raise QuorumConfigurationError("Role script must be all, any or atLeast")


def load_policy(data: Dict[str, Any]) -> MultisigPolicy:
    """Validate a stored configuration dict and build its policy."""
    return WalletConfiguration.model_validate(data).to_policy()


__all__ = [
    "ParticipantEntry",
    "ThresholdRuleModel",
    "WalletConfiguration",
    "load_policy",
]
