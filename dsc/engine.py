"""
engine.py - The collateralized-debt engine of the synthetic dollar

DSCEngine owns the PositionBook and is the only thing that mutates it.
Users deposit approved collateral, mint synthetic dollars (DSC) against it
while their health factor stays >= MIN_HEALTH_FACTOR, burn DSC and redeem
collateral; anyone may liquidate an account whose health factor fell below
the minimum.

Every mutating entry point:
    1. validates its arguments (guard.more_than_zero, guard.is_allowed_token)
    2. takes the reentrancy guard (guard.non_reentrant)
    3. runs inside one transaction scope: position changes, buffered events
       and checkpointable collaborators are rolled back together if anything
       raises, so an operation is either fully applied or has no effect
    4. mutates the book and re-checks the health factor of the affected
       accounts before any collaborator is called; transfers, mints and
       burns are queued as call-outs and issued only once every check passed

The first argument of every entry point is the calling account.

Example:
    ledger = Ledger("tokens", verbose=False)
    weth = LedgerToken(ledger, "WETH", "Wrapped Ether")
    dsc = StableCoin(ledger, owner="deployer")
    feed = StaticPriceFeed({"WETH": 2000 * 10**8})

    engine = DSCEngine([weth], [feed], dsc)
    dsc.transfer_ownership("deployer", engine.address)

    weth.issue("alice", 10 * 10**18)
    weth.approve("alice", engine.address, 10 * 10**18)
    engine.deposit_collateral_and_mint_dsc("alice", "WETH", 10 * 10**18, 100 * 10**18)
    engine.get_health_factor("alice")   # 100 * 10**18
"""

from __future__ import annotations
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple
import logging

from .core import (
    # Constants
    PRECISION, ADDITIONAL_FEED_PRECISION, LIQUIDATION_THRESHOLD,
    LIQUIDATION_BONUS, LIQUIDATION_PRECISION, MIN_HEALTH_FACTOR,
    DEFAULT_ENGINE_ADDRESS,
    # Types
    CollateralToken, StableToken, Checkpointable, SupportedAsset,
    AccountInformation, CollateralDeposited, CollateralRedeemed, EngineEvent,
    # Exceptions
    TokenAddressesAndPriceFeedsMustBeSameLength, InvalidConfiguration,
    BreakHealthFactor, TransferFailed, MintFailed, EngineClosed,
)
from .guard import ReentrancyGuard, more_than_zero, is_allowed_token, non_reentrant, read_locked
from .health import calculate_health_factor
from .liquidation import (
    LiquidationQuote, quote_liquidation, require_liquidatable, require_improved,
)
from .positions import PositionBook
from .pricing_source import OracleAdapter, PriceFeed

logger = logging.getLogger(__name__)

EventCallback = Callable[[EngineEvent], None]


class DSCEngine:
    """
    Collateral and debt accounting for an overcollateralized synthetic dollar.

    Thread Safety:
        Mutating entry points are serialized by one reentrancy guard; a nested
        call from the thread already inside the engine raises ReentrantCall.
        Getters wait for an in-flight operation on another thread, so they
        only ever see committed state; the operating thread itself (or a
        collaborator it calls) reads its own in-flight state.
    """

    def __init__(
        self,
        collateral_tokens: Sequence[CollateralToken],
        price_feeds: Sequence[PriceFeed],
        dsc: StableToken,
        address: str = DEFAULT_ENGINE_ADDRESS,
    ):
        """
        Bind each collateral token to the price feed at the same position.

        Args:
            collateral_tokens: Approved collateral assets, keyed by their `address`
            price_feeds: Feed for each asset, in the same order
            dsc: The synthetic dollar token; the engine must own it to mint and burn
            address: The engine's own account (custody of deposited collateral)

        Raises:
            TokenAddressesAndPriceFeedsMustBeSameLength: If the lists differ in length
            InvalidConfiguration: If an asset identifier is empty or repeated
        """
        if len(collateral_tokens) != len(price_feeds):
            raise TokenAddressesAndPriceFeedsMustBeSameLength(
                f"{len(collateral_tokens)} tokens but {len(price_feeds)} price feeds"
            )
        if not address:
            raise InvalidConfiguration("Engine address cannot be empty")

        self.address = address
        self._dsc = dsc
        self._tokens: Dict[str, CollateralToken] = {}
        self._supported: Dict[str, SupportedAsset] = {}
        self._collateral_tokens: List[str] = []

        for token, feed in zip(collateral_tokens, price_feeds):
            asset = SupportedAsset(token=token.address, price_feed=feed)
            if asset.token in self._supported:
                raise InvalidConfiguration(f"Collateral token {asset.token!r} listed twice")
            self._supported[asset.token] = asset
            self._tokens[asset.token] = token
            self._collateral_tokens.append(asset.token)

        self._price_feeds: Dict[str, PriceFeed] = {
            token: asset.price_feed for token, asset in self._supported.items()
        }
        self._oracle = OracleAdapter(self._price_feeds)
        self._positions = PositionBook()
        self._reentrancy_guard = ReentrancyGuard()

        self._subscribers: List[EventCallback] = []
        self._pending_events: List[EngineEvent] = []
        self._call_outs: List[Tuple[Callable[..., None], tuple]] = []
        self.events: List[EngineEvent] = []
        self._closed = False

    # ========================================================================
    # MUTATING ENTRY POINTS
    # ========================================================================

    @more_than_zero("amount_collateral", "amount_dsc_to_mint")
    @is_allowed_token("token_collateral_address")
    @non_reentrant
    def deposit_collateral_and_mint_dsc(
        self,
        user: str,
        token_collateral_address: str,
        amount_collateral: int,
        amount_dsc_to_mint: int,
    ) -> None:
        """Deposit collateral and mint DSC in one step."""
        with self._transaction("deposit_collateral_and_mint_dsc"):
            self._deposit_collateral(user, token_collateral_address, amount_collateral)
            self._mint_dsc(user, amount_dsc_to_mint)

    @more_than_zero("amount_collateral")
    @is_allowed_token("token_collateral_address")
    @non_reentrant
    def deposit_collateral(self, user: str, token_collateral_address: str, amount_collateral: int) -> None:
        """
        Move `amount_collateral` of the token from `user` into the engine.

        The user must have approved the engine for at least that amount.

        Raises:
            TransferFailed: If the token refused the transfer
        """
        with self._transaction("deposit_collateral"):
            self._deposit_collateral(user, token_collateral_address, amount_collateral)

    @more_than_zero("amount_collateral", "amount_dsc_to_burn")
    @is_allowed_token("token_collateral_address")
    @non_reentrant
    def redeem_collateral_for_dsc(
        self,
        user: str,
        token_collateral_address: str,
        amount_collateral: int,
        amount_dsc_to_burn: int,
    ) -> None:
        """Burn DSC and redeem collateral in one step; health is checked after both."""
        with self._transaction("redeem_collateral_for_dsc"):
            self._burn_dsc(amount_dsc_to_burn, on_behalf_of=user, dsc_from=user)
            self._redeem_collateral(token_collateral_address, amount_collateral, user, user)
            self._revert_if_health_factor_is_broken(user)

    @more_than_zero("amount_collateral")
    @is_allowed_token("token_collateral_address")
    @non_reentrant
    def redeem_collateral(self, user: str, token_collateral_address: str, amount_collateral: int) -> None:
        """
        Return `amount_collateral` of the token from the engine to `user`.

        Raises:
            InsufficientCollateral: If more than the deposited amount is requested
            BreakHealthFactor: If the remaining collateral no longer covers the debt
            TransferFailed: If the token refused the transfer
        """
        with self._transaction("redeem_collateral"):
            self._redeem_collateral(token_collateral_address, amount_collateral, user, user)
            self._revert_if_health_factor_is_broken(user)

    @more_than_zero("amount_dsc_to_mint")
    @non_reentrant
    def mint_dsc(self, user: str, amount_dsc_to_mint: int) -> None:
        """
        Mint DSC to `user` against their deposited collateral.

        Raises:
            BreakHealthFactor: If the new debt would leave the account unhealthy
            MintFailed: If the token refused to mint
        """
        with self._transaction("mint_dsc"):
            self._mint_dsc(user, amount_dsc_to_mint)

    @more_than_zero("amount")
    @non_reentrant
    def burn_dsc(self, user: str, amount: int) -> None:
        """
        Repay `amount` of `user`'s debt with their own DSC.

        Raises:
            InsufficientDebt: If more than the outstanding debt is burned
            TransferFailed: If the DSC could not be collected
        """
        with self._transaction("burn_dsc"):
            self._burn_dsc(amount, on_behalf_of=user, dsc_from=user)
            # Burning only lowers debt; kept as a final invariant check
            self._revert_if_health_factor_is_broken(user)

    @more_than_zero("debt_to_cover")
    @is_allowed_token("token_collateral_address")
    @non_reentrant
    def liquidate(
        self,
        liquidator: str,
        token_collateral_address: str,
        user: str,
        debt_to_cover: int,
    ) -> LiquidationQuote:
        """
        Repay `debt_to_cover` of an unhealthy `user`'s debt and seize collateral.

        The liquidator pays with their own DSC and receives the equivalent
        amount of `token_collateral_address` plus a LIQUIDATION_BONUS percent
        bonus, taken from the user's position.

        Returns:
            The executed LiquidationQuote

        Raises:
            HealthFactorOK: If the user is not below MIN_HEALTH_FACTOR
            InsufficientCollateral: If the user lacks the collateral to pay debt plus bonus
            HealthFactorNotImproved: If the user's health factor did not increase
            BreakHealthFactor: If the liquidator ends up unhealthy
            TransferFailed: If collateral or DSC could not be moved
        """
        with self._transaction("liquidate"):
            starting_user_health_factor = self._health_factor(user)
            require_liquidatable(starting_user_health_factor)

            quote = quote_liquidation(self._oracle, token_collateral_address, debt_to_cover)
            self._redeem_collateral(
                token_collateral_address, quote.total_collateral_to_redeem, user, liquidator
            )
            self._burn_dsc(debt_to_cover, on_behalf_of=user, dsc_from=liquidator)

            ending_user_health_factor = self._health_factor(user)
            require_improved(starting_user_health_factor, ending_user_health_factor)
            self._revert_if_health_factor_is_broken(liquidator)

        logger.warning(
            "Liquidated %s: %d debt covered, %d %s seized by %s",
            user, debt_to_cover, quote.total_collateral_to_redeem, token_collateral_address, liquidator,
            extra={
                "event": "dsc.liquidation",
                "user": user,
                "liquidator": liquidator,
                "token": token_collateral_address,
                "debt_covered": debt_to_cover,
                "collateral_seized": quote.total_collateral_to_redeem,
                "bonus_collateral": quote.bonus_collateral,
                "starting_health_factor": starting_user_health_factor,
                "ending_health_factor": ending_user_health_factor,
            },
        )
        return quote

    # ========================================================================
    # INTERNAL OPERATIONS (run inside a transaction scope)
    #
    # Each one changes the book and queues the collaborator calls that move
    # the matching assets. Queued calls run after the entry point's checks.
    # ========================================================================

    def _deposit_collateral(self, user: str, token: str, amount: int) -> None:
        self._positions.add_collateral(user, token, amount)
        self._emit(CollateralDeposited(user=user, token=token, amount=amount))
        self._call_out(self._collect_collateral, user, token, amount)

    def _mint_dsc(self, user: str, amount: int) -> None:
        self._positions.add_debt(user, amount)
        self._revert_if_health_factor_is_broken(user)
        self._call_out(self._issue_dsc, user, amount)

    def _redeem_collateral(self, token: str, amount: int, redeemed_from: str, redeemed_to: str) -> None:
        self._positions.remove_collateral(redeemed_from, token, amount)
        self._emit(CollateralRedeemed(
            redeemed_from=redeemed_from, redeemed_to=redeemed_to, token=token, amount=amount,
        ))
        self._call_out(self._pay_out_collateral, token, amount, redeemed_from, redeemed_to)

    def _burn_dsc(self, amount: int, on_behalf_of: str, dsc_from: str) -> None:
        """Lower `on_behalf_of`'s debt, then collect and destroy `dsc_from`'s tokens."""
        self._positions.remove_debt(on_behalf_of, amount)
        self._call_out(self._collect_and_burn_dsc, amount, on_behalf_of, dsc_from)

    # Call-outs

    def _collect_collateral(self, user: str, token: str, amount: int) -> None:
        success = self._tokens[token].transfer_from(self.address, user, self.address, amount)
        if not success:
            raise TransferFailed(f"Could not transfer {amount} {token} from {user}")
        logger.info(
            "%s deposited %d %s", user, amount, token,
            extra={"event": "dsc.deposit", "user": user, "token": token, "amount": amount},
        )

    def _issue_dsc(self, user: str, amount: int) -> None:
        minted = self._dsc.mint(self.address, user, amount)
        if not minted:
            raise MintFailed(f"Could not mint {amount} DSC to {user}")
        logger.info(
            "%s minted %d DSC", user, amount,
            extra={"event": "dsc.mint", "user": user, "amount": amount},
        )

    def _pay_out_collateral(self, token: str, amount: int, redeemed_from: str, redeemed_to: str) -> None:
        success = self._tokens[token].transfer(self.address, redeemed_to, amount)
        if not success:
            raise TransferFailed(f"Could not transfer {amount} {token} to {redeemed_to}")
        logger.info(
            "%d %s redeemed from %s to %s", amount, token, redeemed_from, redeemed_to,
            extra={
                "event": "dsc.redeem",
                "redeemed_from": redeemed_from,
                "redeemed_to": redeemed_to,
                "token": token,
                "amount": amount,
            },
        )

    def _collect_and_burn_dsc(self, amount: int, on_behalf_of: str, dsc_from: str) -> None:
        success = self._dsc.transfer_from(self.address, dsc_from, self.address, amount)
        if not success:
            raise TransferFailed(f"Could not collect {amount} DSC from {dsc_from}")
        self._dsc.burn(self.address, amount)
        logger.info(
            "%d DSC burned for %s (paid by %s)", amount, on_behalf_of, dsc_from,
            extra={"event": "dsc.burn", "on_behalf_of": on_behalf_of, "dsc_from": dsc_from, "amount": amount},
        )

    def _call_out(self, fn: Callable[..., None], *args) -> None:
        self._call_outs.append((fn, args))

    def _get_account_information(self, user: str) -> AccountInformation:
        return AccountInformation(
            total_dsc_minted=self._positions.debt_of(user),
            collateral_value_in_usd=self.get_account_collateral_value(user),
        )

    def _health_factor(self, user: str) -> int:
        total_dsc_minted, collateral_value_in_usd = self._get_account_information(user)
        return calculate_health_factor(total_dsc_minted, collateral_value_in_usd)

    def _revert_if_health_factor_is_broken(self, user: str) -> None:
        user_health_factor = self._health_factor(user)
        if user_health_factor < MIN_HEALTH_FACTOR:
            logger.warning(
                "Health factor of %s would be %d", user, user_health_factor,
                extra={
                    "event": "dsc.health_factor_broken",
                    "user": user,
                    "health_factor": user_health_factor,
                    "min_health_factor": MIN_HEALTH_FACTOR,
                },
            )
            raise BreakHealthFactor(user_health_factor)

    # ========================================================================
    # TRANSACTION SCOPE AND EVENTS
    # ========================================================================

    def _checkpointables(self) -> List[Checkpointable]:
        seen = set()
        collaborators = []
        for collaborator in [self._dsc, *self._tokens.values()]:
            if id(collaborator) in seen or not isinstance(collaborator, Checkpointable):
                continue
            seen.add(id(collaborator))
            collaborators.append(collaborator)
        return collaborators

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[None]:
        """
        All-or-nothing scope of one entry point.

        The body changes the book and runs every check; the call-outs it
        queued are issued only when the body finished without raising, so a
        rejected operation never reaches a collaborator.

        On any exception the position journal is unwound, checkpointable
        collaborators are rolled back (last checkpointed first), buffered
        events and queued call-outs are dropped, and the exception
        propagates unchanged.
        """
        if self._closed:
            raise EngineClosed("Engine is closed")

        mark = self._positions.begin()
        checkpoints = [(c, c.checkpoint()) for c in self._checkpointables()]
        self._pending_events = []
        self._call_outs = []
        try:
            yield
            call_outs, self._call_outs = self._call_outs, []
            for fn, args in call_outs:
                fn(*args)
        except BaseException as exc:
            self._positions.rollback(mark)
            for collaborator, checkpoint in reversed(checkpoints):
                collaborator.rollback(checkpoint)
            self._pending_events = []
            self._call_outs = []
            logger.warning(
                "%s rolled back: %s: %s", operation, type(exc).__name__, exc,
                extra={"event": "dsc.rolled_back", "operation": operation, "error": type(exc).__name__},
            )
            raise

        self._positions.commit(mark)
        events, self._pending_events = self._pending_events, []
        self.events.extend(events)
        for event in events:
            self._publish(event)

    def _emit(self, event: EngineEvent) -> None:
        self._pending_events.append(event)

    def _publish(self, event: EngineEvent) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                # Observers index events; they cannot undo a committed operation.
                logger.exception(
                    "Event subscriber %r failed on %r", callback, event,
                    extra={"event": "dsc.subscriber_failed"},
                )

    def subscribe(self, callback: EventCallback) -> None:
        """Call `callback(event)` for every event of every committed operation."""
        self._subscribers.append(callback)

    def unsubscribe(self, callback: EventCallback) -> None:
        self._subscribers.remove(callback)

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    def close(self) -> None:
        """Tear the engine down. Later mutating calls raise EngineClosed; getters keep working."""
        with self._reentrancy_guard.hold():
            self._closed = True
            self._subscribers.clear()

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> DSCEngine:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ========================================================================
    # READ-ONLY
    # ========================================================================

    @staticmethod
    def calculate_health_factor(total_dsc_minted: int, collateral_value_in_usd: int) -> int:
        return calculate_health_factor(total_dsc_minted, collateral_value_in_usd)

    @read_locked
    def get_account_information(self, user: str) -> AccountInformation:
        """(total_dsc_minted, collateral_value_in_usd) of `user`."""
        return self._get_account_information(user)

    @read_locked
    def get_health_factor(self, user: str) -> int:
        return self._health_factor(user)

    get_user_health_factor = get_health_factor

    def get_usd_value(self, token: str, amount: int) -> int:
        return self._oracle.usd_value(token, amount)

    def get_token_amount_from_usd(self, token: str, usd_amount_in_wei: int) -> int:
        return self._oracle.amount_from_usd(token, usd_amount_in_wei)

    @read_locked
    def get_account_collateral_value(self, user: str) -> int:
        """USD value (18 decimals) of all of `user`'s deposited collateral."""
        total_collateral_value_in_usd = 0
        for token in self._collateral_tokens:
            amount = self._positions.collateral_of(user, token)
            if amount:
                total_collateral_value_in_usd += self._oracle.usd_value(token, amount)
        return total_collateral_value_in_usd

    @read_locked
    def get_collateral_balance_of_user(self, user: str, token: str) -> int:
        return self._positions.collateral_of(user, token)

    @read_locked
    def get_collateral_token_amount(self, token: str, user: str) -> int:
        return self._positions.collateral_of(user, token)

    @read_locked
    def get_dsc_minted(self, user: str) -> int:
        return self._positions.debt_of(user)

    def get_collateral_tokens(self) -> List[str]:
        return list(self._collateral_tokens)

    def get_supported_assets(self) -> List[SupportedAsset]:
        return [self._supported[token] for token in self._collateral_tokens]

    def get_collateral_token_price_feed(self, token: str) -> Optional[PriceFeed]:
        return self._price_feeds.get(token)

    def get_dsc(self) -> StableToken:
        return self._dsc

    def get_precision(self) -> int:
        return PRECISION

    def get_additional_feed_precision(self) -> int:
        return ADDITIONAL_FEED_PRECISION

    def get_liquidation_threshold(self) -> int:
        return LIQUIDATION_THRESHOLD

    def get_liquidation_bonus(self) -> int:
        return LIQUIDATION_BONUS

    def get_liquidation_precision(self) -> int:
        return LIQUIDATION_PRECISION

    def get_min_health_factor(self) -> int:
        return MIN_HEALTH_FACTOR

    def __repr__(self) -> str:
        return f"DSCEngine({self.address!r}, collateral={self._collateral_tokens})"
