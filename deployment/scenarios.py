"""
Setup plans of the deployment scenarios.

A plan maps a run context to the ordered setup sequences of its logical
contracts. Config objects come before the pool that reads them, and the
initial liquidity is seeded before the pool is enabled.

Sequences restart from their first step after a failure, so every step here
is either a plain "set X to value" call or carries a check that detects its
effect on-chain (NFT mint, initial deposits, one-shot initializers).
"""

from typing import Callable, List

from deployment.constants import INITIALIZABLE_SLOT
from deployment.driver import RunContext
from deployment.orchestrator import InitializationTarget
from deployment.signers import SignerRole

# byte offset of OpenZeppelin's `_initialized` counter inside storage slot 0:
# upgradeable contracts start with Initializable, BasePoolConfig packs it after Ownable's owner
UPGRADEABLE_INITIALIZED_OFFSET = 0
POOL_CONFIG_INITIALIZED_OFFSET = 20

BASE_CREDIT_POOL_ROLES = tuple(SignerRole)


def initializer_ran(ctx: RunContext, address: str, offset: int = 0) -> Callable[[], bool]:
    """Has the OpenZeppelin initializer of the contract at `address` run?"""

    def check() -> bool:
        word = int.from_bytes(ctx.read_storage(address, INITIALIZABLE_SLOT), "big")
        return (word >> (8 * offset)) & 0xFF != 0

    return check


def holds_balance(token, account) -> Callable[[], bool]:
    """Does `account` hold any of `token` (ERC20 or ERC721)?"""
    return lambda: token.balanceOf(account) > 0


def holds_at_least(token, account, amount: int) -> Callable[[], bool]:
    return lambda: token.balanceOf(account) >= amount


def any_of(*checks: Callable[[], bool]) -> Callable[[], bool]:
    return lambda: any(check() for check in checks)


def base_credit_pool_setup(ctx: RunContext) -> List[InitializationTarget]:
    roles, constants = ctx.roles, ctx.constants
    deployer, treasury = roles.deployer, roles.treasury
    evaluation_agent = roles.evaluation_agent

    usdc = ctx.contract("USDC")
    ea_nft = ctx.contract("EANFT")
    huma_config = ctx.contract("HumaConfig")
    fee_manager = ctx.contract("BaseCreditPoolFeeManager")
    hdt = ctx.contract("BaseCreditHDT")
    pool_config = ctx.contract("BaseCreditPoolConfig")
    pool = ctx.contract("BaseCreditPool")

    step = ctx.step
    targets = list()

    targets.append(
        InitializationTarget(
            name="HumaConfig",
            requires=("USDC", "EANFT"),
            steps=[
                step("set huma treasury", huma_config.setHumaTreasury, treasury.address),
                step("set treasury fee", huma_config.setTreasuryFee, constants.TREASURY_FEE_BPS),
                step("set EA NFT", huma_config.setEANFTContractAddress, ea_nft.address),
                step(
                    "set EA service account",
                    huma_config.setEAServiceAccount,
                    roles.ea_service.address,
                ),
                step(
                    "set PDS service account",
                    huma_config.setPDSServiceAccount,
                    roles.pds_service.address,
                ),
                step(
                    "set protocol default grace period",
                    huma_config.setProtocolDefaultGracePeriod,
                    constants.PROTOCOL_DEFAULT_GRACE_PERIOD,
                ),
                step("set liquidity asset", huma_config.setLiquidityAsset, usdc.address, True),
            ],
        )
    )

    targets.append(
        InitializationTarget(
            name="EANFT",
            steps=[
                step(
                    "mint evaluation agent NFT",
                    ea_nft.mintNFT,
                    evaluation_agent.address,
                    sender=evaluation_agent,
                    skip_if=holds_balance(ea_nft, evaluation_agent.address),
                ),
            ],
        )
    )

    targets.append(
        InitializationTarget(
            name="BaseCreditPoolFeeManager",
            steps=[step("set fees", fee_manager.setFees, *constants.FEES)],
        )
    )

    targets.append(
        InitializationTarget(
            name="BaseCreditHDT",
            requires=("USDC", "BaseCreditPool"),
            steps=[
                step(
                    "initialize HDT",
                    hdt.initialize,
                    constants.HDT_NAME,
                    constants.HDT_SYMBOL,
                    usdc.address,
                    skip_if=initializer_ran(ctx, hdt.address, UPGRADEABLE_INITIALIZED_OFFSET),
                ),
                step("set HDT pool", hdt.setPool, pool.address),
            ],
        )
    )

    targets.append(
        InitializationTarget(
            name="BaseCreditPoolConfig",
            requires=("BaseCreditHDT", "HumaConfig", "BaseCreditPoolFeeManager", "BaseCreditPool"),
            steps=[
                step(
                    "initialize pool config",
                    pool_config.initialize,
                    constants.POOL_NAME,
                    hdt.address,
                    huma_config.address,
                    fee_manager.address,
                    skip_if=initializer_ran(
                        ctx, pool_config.address, POOL_CONFIG_INITIALIZED_OFFSET
                    ),
                ),
                step(
                    "set pool liquidity cap",
                    pool_config.setPoolLiquidityCap,
                    constants.POOL_LIQUIDITY_CAP,
                ),
                step("set pool", pool_config.setPool, pool.address),
                step(
                    "set pool owner rewards and liquidity",
                    pool_config.setPoolOwnerRewardsAndLiquidity,
                    constants.POOL_OWNER_REWARDS_BPS,
                    constants.POOL_OWNER_LIQUIDITY_BPS,
                ),
                step(
                    "set EA rewards and liquidity",
                    pool_config.setEARewardsAndLiquidity,
                    constants.EA_REWARDS_BPS,
                    constants.EA_LIQUIDITY_BPS,
                ),
                step(
                    "set evaluation agent",
                    pool_config.setEvaluationAgent,
                    constants.EA_NFT_ID,
                    evaluation_agent.address,
                ),
                step(
                    "set max credit line",
                    pool_config.setMaxCreditLine,
                    constants.MAX_CREDIT_LINE,
                ),
                step("set APR", pool_config.setAPR, constants.APR_BPS),
                step(
                    "set receivable required",
                    pool_config.setReceivableRequiredInBps,
                    constants.RECEIVABLE_REQUIRED_BPS,
                ),
                step(
                    "set pay period",
                    pool_config.setPoolPayPeriod,
                    constants.POOL_PAY_PERIOD_DAYS,
                ),
                step("set pool token", pool_config.setPoolToken, hdt.address),
                step(
                    "set withdrawal lockout period",
                    pool_config.setWithdrawalLockoutPeriod,
                    constants.WITHDRAWAL_LOCKOUT_PERIOD_DAYS,
                ),
                step(
                    "set pool default grace period",
                    pool_config.setPoolDefaultGracePeriod,
                    constants.POOL_DEFAULT_GRACE_PERIOD_DAYS,
                ),
                step("set pool owner treasury", pool_config.setPoolOwnerTreasury, treasury.address),
                step(
                    "set credit approval expiration",
                    pool_config.setCreditApprovalExpiration,
                    constants.CREDIT_APPROVAL_EXPIRATION_DAYS,
                ),
                step(
                    "add pool operator",
                    pool_config.addPoolOperator,
                    deployer.address,
                    skip_if=lambda: pool_config.isOperator(deployer.address),
                ),
            ],
        )
    )

    treasury_deposited = holds_balance(hdt, treasury.address)
    ea_deposited = holds_balance(hdt, evaluation_agent.address)
    # a mint that landed before a failed approve or deposit shows up as USDC, not HDT
    treasury_funded = any_of(
        treasury_deposited,
        holds_at_least(usdc, treasury.address, constants.TREASURY_INITIAL_DEPOSIT),
    )
    ea_funded = any_of(
        ea_deposited,
        holds_at_least(usdc, evaluation_agent.address, constants.EA_INITIAL_DEPOSIT),
    )
    targets.append(
        InitializationTarget(
            name="BaseCreditPool",
            requires=("BaseCreditPoolConfig", "BaseCreditHDT", "USDC"),
            steps=[
                step(
                    "initialize pool",
                    pool.initialize,
                    pool_config.address,
                    skip_if=initializer_ran(ctx, pool.address, UPGRADEABLE_INITIALIZED_OFFSET),
                ),
                step("approve EA as lender", pool.addApprovedLender, evaluation_agent.address),
                step("approve treasury as lender", pool.addApprovedLender, treasury.address),
                step(
                    "mint treasury liquidity",
                    usdc.mint,
                    treasury.address,
                    constants.TREASURY_INITIAL_DEPOSIT,
                    skip_if=treasury_funded,
                ),
                step(
                    "approve treasury liquidity",
                    usdc.approve,
                    pool.address,
                    constants.TREASURY_INITIAL_DEPOSIT,
                    sender=treasury,
                    skip_if=treasury_deposited,
                ),
                step(
                    "treasury initial deposit",
                    pool.makeInitialDeposit,
                    constants.TREASURY_INITIAL_DEPOSIT,
                    sender=treasury,
                    skip_if=treasury_deposited,
                ),
                step(
                    "mint EA liquidity",
                    usdc.mint,
                    evaluation_agent.address,
                    constants.EA_INITIAL_DEPOSIT,
                    skip_if=ea_funded,
                ),
                step(
                    "approve EA liquidity",
                    usdc.approve,
                    pool.address,
                    constants.EA_INITIAL_DEPOSIT,
                    sender=evaluation_agent,
                    skip_if=ea_deposited,
                ),
                step(
                    "EA initial deposit",
                    pool.makeInitialDeposit,
                    constants.EA_INITIAL_DEPOSIT,
                    sender=evaluation_agent,
                    skip_if=ea_deposited,
                ),
                step("enable pool", pool.enablePool),
            ],
        )
    )

    return targets
