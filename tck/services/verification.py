"""
Cross-oracle verification.

Each check runs in two steps:
1. Establish a baseline for the entity, either from the ground truth or from
   the operation result, and assert read-your-writes on it.
2. Corroborate the baseline against the read replica inside
   ``retry_until_consistent``.

The verifier refuses step 2 for an entity that never went through step 1.

Usage:
    verifier = CrossOracleVerifier(consensus, mirror)
    ref = EntityRef.account(result["accountId"])
    verifier.establish(ref)
    verifier.expect(ref, balance=0)
    verifier.corroborate(ref)
"""

from __future__ import annotations

from typing import Any, Iterable

from tck.core.exceptions import EntityNotFound, VerificationOrderError
from tck.core.keys import raw_key_from_der
from tck.core.logging import get_logger
from tck.schemas.entities import SNAPSHOT_TYPES, EntityRef, EntitySnapshot
from tck.services.consensus import ConsensusInfoClient
from tck.services.mirror_node import MirrorNodeClient
from tck.services.resilience import RetryPolicy, retry_until_consistent

logger = get_logger("verification")


def _format_diff(ref: EntityRef, diff: dict[str, tuple[Any, Any]]) -> str:
    lines = [f"  {name}: ground truth={gt!r} mirror={mr!r}" for name, (gt, mr) in diff.items()]
    return f"{ref} disagrees across oracles:\n" + "\n".join(lines)


class CrossOracleVerifier:
    """Ground-truth-first verification with eventual replica agreement."""

    def __init__(
        self,
        ground_truth: ConsensusInfoClient,
        read_replica: MirrorNodeClient,
        policy: RetryPolicy | None = None,
    ):
        self.ground_truth = ground_truth
        self.read_replica = read_replica
        self.policy = policy
        self._baselines: dict[EntityRef, EntitySnapshot] = {}
        self._absent: set[EntityRef] = set()

    # -------------------------------------------------------------------------
    # Baselines
    # -------------------------------------------------------------------------

    def establish(self, ref: EntityRef) -> EntitySnapshot:
        """Query the ground truth for ``ref`` and keep it as the baseline."""
        snapshot = self.ground_truth.query(ref)
        self._baselines[ref] = snapshot
        logger.debug(f"Baseline for {ref} from consensus")
        return snapshot

    def establish_from_result(self, ref: EntityRef, **fields: Any) -> EntitySnapshot:
        """Use fields known from the operation result as the baseline."""
        id_field = f"{ref.kind.value}_id"
        snapshot = SNAPSHOT_TYPES[ref.kind].model_validate(
            {id_field: ref.entity_id, **fields}
        )
        self._baselines[ref] = snapshot
        logger.debug(f"Baseline for {ref} from operation result")
        return snapshot

    def baseline(self, ref: EntityRef) -> EntitySnapshot:
        try:
            return self._baselines[ref]
        except KeyError:
            raise VerificationOrderError(ref) from None

    def forget(self, ref: EntityRef) -> None:
        """Drop a baseline, e.g. after a further mutation of the entity."""
        self._baselines.pop(ref, None)

    # -------------------------------------------------------------------------
    # Assertions
    # -------------------------------------------------------------------------

    def expect(self, ref: EntityRef, **expected: Any) -> EntitySnapshot:
        """Assert baseline fields; establishes the baseline from consensus if missing."""
        snapshot = self._baselines.get(ref) or self.establish(ref)
        actual = snapshot.model_dump()
        mismatched = {
            name: (value, actual.get(name))
            for name, value in expected.items()
            if actual.get(name) != value
        }
        if mismatched:
            raise AssertionError(
                f"{ref} ground truth mismatch: "
                + ", ".join(
                    f"{name} expected {want!r} got {got!r}"
                    for name, (want, got) in mismatched.items()
                )
            )
        return snapshot

    def expect_absent(self, ref: EntityRef) -> None:
        """Assert the ground truth records ``ref`` as absent (e.g. deleted)."""
        try:
            self.ground_truth.query(ref)
        except EntityNotFound:
            self._baselines.pop(ref, None)
            self._absent.add(ref)
            return
        raise AssertionError(f"{ref} still exists on consensus")

    def corroborate(
        self,
        ref: EntityRef,
        fields: Iterable[str] | None = None,
        policy: RetryPolicy | None = None,
    ) -> EntitySnapshot:
        """Wait until the mirror node agrees with the baseline.

        Without ``fields`` every field exposed by both snapshots is compared.
        """
        baseline = self.baseline(ref)
        fields = list(fields) if fields is not None else None

        def mirror_agrees_with_baseline() -> EntitySnapshot:
            replica = self.read_replica.query(ref)
            diff = baseline.diff(replica, fields)
            if diff:
                raise AssertionError(_format_diff(ref, diff))
            return replica

        mirror_agrees_with_baseline.__name__ = f"corroborate[{ref}]"
        return retry_until_consistent(
            mirror_agrees_with_baseline, policy or self.policy
        )

    def corroborate_absent(self, ref: EntityRef, policy: RetryPolicy | None = None) -> None:
        """Wait until the mirror node reports ``ref`` deleted or gone."""
        if ref not in self._absent:
            raise VerificationOrderError(ref)

        def mirror_reports_absent() -> None:
            try:
                replica = self.read_replica.query(ref)
            except EntityNotFound:
                return
            if getattr(replica, "deleted", None) is not True:
                raise AssertionError(f"{ref} not deleted on mirror node")

        retry_until_consistent(mirror_reports_absent, policy or self.policy)

    # -------------------------------------------------------------------------
    # Composite checks
    # -------------------------------------------------------------------------

    def verify_account_created(self, account_id: str) -> None:
        """Both oracles know the account under the same id."""
        ref = EntityRef.account(account_id)
        self.expect(ref, account_id=account_id)
        self.corroborate(ref, fields=["account_id"])

    def verify_hbar_balance(self, account_id: str, balance: int) -> None:
        ref = EntityRef.account(account_id)
        self.forget(ref)
        self.expect(ref, balance=balance)
        self.corroborate(ref, fields=["balance"])

    def verify_token_balance(self, account_id: str, token_id: str, balance: int) -> None:
        """An absent token relationship counts as a zero balance on either side."""
        consensus_balance = self.ground_truth.get_token_balances(account_id).get(token_id, 0)
        if consensus_balance != balance:
            raise AssertionError(
                f"{token_id} balance of {account_id} on consensus is {consensus_balance}, expected {balance}"
            )

        def mirror_token_balance_matches() -> None:
            replica = self.read_replica.get_account(account_id)
            mirror_balance = (replica.token_balances or {}).get(token_id, 0)
            if mirror_balance != balance:
                raise AssertionError(
                    f"{token_id} balance of {account_id} on mirror node is {mirror_balance}, expected {balance}"
                )

        retry_until_consistent(mirror_token_balance_matches, self.policy)

    def verify_account_key(self, account_id: str, der_key: str) -> None:
        """The account's single public key matches ``der_key`` on both oracles."""
        ref = EntityRef.account(account_id)
        self.forget(ref)
        self.expect(ref, public_key=raw_key_from_der(der_key))
        self.corroborate(ref, fields=["public_key"])
