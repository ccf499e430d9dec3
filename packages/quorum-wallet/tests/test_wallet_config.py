"""
Tests for stored wallet configurations and metadata round-trips.
"""
from __future__ import annotations

import pytest
from pydantic import ValidationError

from quorum_core.exceptions import KeyFormatError, QuorumConfigurationError, UnsupportedNetworkError
from quorum_wallet.derivation import Network, StakeCredential, derive_stake_address
from quorum_wallet.keys import Role
from quorum_wallet.native_script import ThresholdKind, ThresholdRule
from quorum_wallet.policy import MultisigPolicy
from quorum_wallet.wallet_config import (
    ParticipantEntry,
    ThresholdRuleModel,
    WalletConfiguration,
    load_policy,
)

ENTERPRISE_KEY = "addr1vx2fxv2umyhttkxyxp8x0dlpdt3k6cwng5pxj3jhsydzers66hrl8"
REWARD_KEY_TESTNET = "stake_test1uqehkck0lajq8gr28t9uxnuvgcqrc6070x3k9r8048z8y5gssrtvn"
PAYMENT_HASH = "9493315cd92eb5d8c4304e67b7e16ae36d61d34502694657811a2c8e"
STAKE_HASH = "337b62cfff6403a06a3acbc34f8c46003c69fe79a3628cefa9c47251"


@pytest.fixture
def stored(signers, stake_signers):
    """Stored configuration as the front end persists it."""
    participants = []
    for pay, stake in zip(signers, stake_signers):
        participants.append({"addressOrKeyHex": pay.key_hash_hex, "role": 0, "name": pay.name})
        participants.append({"addressOrKeyHex": stake.vkey.hex(), "role": "stake", "name": stake.name})
    return {
        "name": "Team Wallet",
        "description": "Operations treasury",
        "participants": participants,
        "thresholdRule": {"type": "atLeast", "required": 2},
        "network": "preprod",
        "stakeCredentialOverride": None,
    }


class TestParticipantEntry:
    """Tests for ParticipantEntry."""

    def test_aliases(self):
        """Should read camelCase and snake_case names."""
        by_alias = ParticipantEntry.model_validate({"addressOrKeyHex": PAYMENT_HASH, "role": 2})
        by_name = ParticipantEntry(address_or_key_hex=PAYMENT_HASH, role="stake")
        assert by_alias == by_name
        assert by_alias.to_dict() == {"addressOrKeyHex": PAYMENT_HASH, "role": 2, "name": ""}

    def test_unknown_role(self):
        """Should reject unknown roles at validation time."""
        with pytest.raises((ValidationError, KeyFormatError)):
            ParticipantEntry.model_validate({"addressOrKeyHex": PAYMENT_HASH, "role": "treasury"})

    def test_to_key(self):
        """Should normalize the address into a key."""
        key = ParticipantEntry(address_or_key_hex=ENTERPRISE_KEY, name="alice").to_key()
        assert key.key_hash_hex == PAYMENT_HASH
        assert key.display_name == "alice"
        assert key.participant_id is None

    def test_to_key_with_participant_id(self):
        """Should carry an explicit participantId."""
        entry = ParticipantEntry.model_validate(
            {"addressOrKeyHex": ENTERPRISE_KEY, "name": "Alice Payment", "participantId": "alice"}
        )
        assert entry.to_key().participant_id == "alice"
        assert entry.to_dict()["participantId"] == "alice"


class TestThresholdRuleModel:
    """Tests for ThresholdRuleModel."""

    def test_to_rule(self):
        """Should build the rule."""
        assert ThresholdRuleModel(type="all").to_rule() == ThresholdRule.all()

    def test_roundtrip(self):
        """Should convert from a rule."""
        model = ThresholdRuleModel.from_rule(ThresholdRule.at_least(3))
        assert model.type is ThresholdKind.AT_LEAST
        assert model.to_dict() == {"type": "atLeast", "required": 3}


class TestWalletConfiguration:
    """Tests for WalletConfiguration."""

    def test_to_policy(self, stored, signers, stake_signers):
        """Should build a policy with staking enabled."""
        policy = load_policy(stored)
        assert policy.network is Network.TESTNET
        assert policy.staking_enabled
        assert policy.eligible_signers(Role.STAKE) == tuple(s.key_hash_hex for s in stake_signers)
        assert policy.threshold == ThresholdRule.at_least(2)

    def test_default_network_from_settings(self, stored, monkeypatch):
        """Should use the configured default network when none is stored."""
        monkeypatch.setenv("QUORUM_DEFAULT_NETWORK", "mainnet")
        stored["network"] = None
        assert load_policy(stored).network is Network.MAINNET

    def test_unsupported_network(self, stored):
        """Should reject unknown networks."""
        stored["network"] = "sanchonet"
        with pytest.raises(UnsupportedNetworkError):
            load_policy(stored)

    def test_bad_key(self, stored):
        """Should surface key errors."""
        stored["participants"][0]["addressOrKeyHex"] = "garbage"
        with pytest.raises(KeyFormatError):
            load_policy(stored)

    def test_no_participants(self, stored):
        """Should reject an empty participant list."""
        stored["participants"] = []
        with pytest.raises(QuorumConfigurationError):
            load_policy(stored)

    def test_stake_override(self, stored):
        """Should accept a reward address override."""
        stored["participants"] = [p for p in stored["participants"] if p["role"] == 0]
        stored["stakeCredentialOverride"] = REWARD_KEY_TESTNET
        policy = load_policy(stored)
        assert policy.stake_credential_override == StakeCredential(bytes.fromhex(STAKE_HASH))

    def test_from_policy(self, stored):
        """Should reproduce the same policy."""
        policy = load_policy(stored)
        config = WalletConfiguration.from_policy(policy)
        assert config.to_policy() == policy
        assert config.to_dict()["thresholdRule"] == {"type": "atLeast", "required": 2}
        assert config.to_dict()["network"] == "testnet"

    def test_from_policy_script_override(self, stored):
        """Should keep a script override as a reward address."""
        stored["participants"] = [p for p in stored["participants"] if p["role"] == 0]
        script_credential = StakeCredential(bytes(28), is_script=True)
        stored["stakeCredentialOverride"] = derive_stake_address(script_credential, Network.TESTNET)
        policy = load_policy(stored)
        config = WalletConfiguration.from_policy(policy)
        assert config.stake_credential_override == stored["stakeCredentialOverride"]
        assert config.to_policy().stake_credential_override == script_credential


class TestMetadataRoundTrip:
    """Tests for rebuilding configurations from registration metadata."""

    def test_same_addresses(self, stored):
        """Should rebuild a policy that derives the same identifiers."""
        policy = load_policy(stored)
        rebuilt = WalletConfiguration.from_metadata_document(
            policy.auxiliary_metadata(), Network.TESTNET
        ).to_policy()
        assert rebuilt.derive().to_dict() == policy.derive().to_dict()
        assert rebuilt.name == "Team Wallet"
        assert rebuilt.description == "Operations treasury"

    def test_paired_by_participant_id(self, signers, stake_signers):
        """Should keep the stake script and base address when ids pair the keys."""
        participants = []
        for pay, stake in zip(signers, stake_signers):
            participants.append({"addressOrKeyHex": pay.key_hash_hex, "role": 0, "participantId": pay.name})
            participants.append({"addressOrKeyHex": stake.key_hash_hex, "role": 2, "participantId": pay.name})
        policy = load_policy({
            "name": "Paired",
            "participants": participants,
            "thresholdRule": {"type": "atLeast", "required": 2},
            "network": "testnet",
        })
        document = policy.metadata_document()
        assert document["participants"][signers[0].key_hash_hex] == {"name": "", "participantId": "alice"}

        rebuilt = WalletConfiguration.from_metadata_document(document, Network.TESTNET).to_policy()
        assert rebuilt.script_for(Role.STAKE) == policy.script_for(Role.STAKE)
        assert rebuilt.derive().payment_address == policy.derive().payment_address
        assert rebuilt.derive().payment_address.startswith("addr_test1x")

    def test_per_key_names(self, signers, stake_signers):
        """Should keep staking for keys named per role without participant ids."""
        participants = []
        for pay, stake in zip(signers, stake_signers):
            participants.append({"addressOrKeyHex": pay.key_hash_hex, "role": 0, "name": f"{pay.name} Payment"})
            participants.append({"addressOrKeyHex": stake.key_hash_hex, "role": 2, "name": f"{pay.name} Stake"})
        policy = load_policy({
            "name": "Named",
            "participants": participants,
            "thresholdRule": {"type": "all"},
            "network": "testnet",
        })
        assert policy.staking_enabled

        rebuilt = WalletConfiguration.from_metadata_document(
            policy.auxiliary_metadata(), Network.TESTNET
        ).to_policy()
        assert rebuilt.derive().to_dict() == policy.derive().to_dict()

    def test_plain_document(self, two_of_three):
        """Should accept an unwrapped document."""
        rebuilt = WalletConfiguration.from_metadata_document(
            two_of_three.metadata_document(), "testnet"
        ).to_policy()
        assert rebuilt == two_of_three

    def test_chunked_strings(self, two_of_three):
        """Should join chunked names and descriptions."""
        long_policy = MultisigPolicy(
            name="N" * 100,
            participants=two_of_three.participants,
            threshold=two_of_three.threshold,
            description="d" * 130,
            network=two_of_three.network,
        )
        config = WalletConfiguration.from_metadata_document(long_policy.auxiliary_metadata(), 0)
        assert config.name == "N" * 100
        assert config.description == "d" * 130

    def test_missing_payment_script(self):
        """Should reject documents without a payment script."""
        with pytest.raises(QuorumConfigurationError):
            WalletConfiguration.from_metadata_document({"name": "x", "scripts": {}}, "mainnet")

    def test_nested_scripts_rejected(self):
        """Should refuse scripts that are not flat multisig."""
        document = {
            "name": "x",
            "scripts": {
                "0": {
                    "type": "all",
                    "scripts": [{"type": "any", "scripts": [{"type": "sig", "keyHash": PAYMENT_HASH}]}],
                }
            },
        }
        with pytest.raises(QuorumConfigurationError):
            WalletConfiguration.from_metadata_document(document, "mainnet")
