I = importlib

campaigns = Hash() # campaign_id -> campaign record, see create_campaign
contributions = Hash(default_value=decimal('0.0')) # [campaign_id, contributor] -> cumulative amount
rewards = Hash(default_value=0) # [campaign_id, contributor] -> reward units issued
campaign_count = Variable(default_value=0)
metadata = Hash()

reentrancyGuardActive = Variable(default_value=False)

# Standard XSC001 (Fungible Token) interface
token_interface = [
    I.Func('transfer_from', args=('amount', 'to', 'main_account')),
    I.Func('transfer', args=('amount', 'to')),
    I.Func('balance_of', args=('address',)),
]

metadata_keys = ['operator', 'currency', 'factory', 'campaign_duration', 'reward_unit']

# Events
CampaignCreated = LogEvent(
    event="campaign_created",
    params={
        "campaign_id": {'type':int, 'idx':True},
        "owner": {'type':str, 'idx':True},
        "goal": {'type':(int, float, decimal)},
        "deadline": {'type':str, 'idx':False}
    })

Contribution = LogEvent(
    event="contribution",
    params={
        "campaign_id": {'type':int, 'idx':True},
        "contributor": {'type':str, 'idx':True},
        "amount": {'type':(int, float, decimal)},
        "total_contributed": {'type':(int, float, decimal)}
    })

RewardIssued = LogEvent(
    event="reward_issued",
    params={
        "campaign_id": {'type':int, 'idx':True},
        "contributor": {'type':str, 'idx':True},
        "minted": {'type':int},
        "balance": {'type':int}
    })

FundraiseCancelled = LogEvent(
    event="fundraise_cancelled",
    params={
        "campaign_id": {'type':int, 'idx':True},
        "owner": {'type':str, 'idx':True}
    })

OwnerWithdrawal = LogEvent(
    event="owner_withdrawal",
    params={
        "campaign_id": {'type':int, 'idx':True},
        "owner": {'type':str, 'idx':True},
        "amount": {'type':(int, float, decimal)},
        "total_withdrawn": {'type':(int, float, decimal)}
    })

Refund = LogEvent(
    event="refund",
    params={
        "campaign_id": {'type':int, 'idx':True},
        "contributor": {'type':str, 'idx':True},
        "amount": {'type':(int, float, decimal)}
    })

@construct
def seed():
    metadata['operator'] = ctx.caller
    metadata['currency'] = 'currency'
    metadata['factory'] = 'con_crowdfundr_factory'
    metadata['campaign_duration'] = datetime.DAYS * 30
    metadata['reward_unit'] = decimal('1')
    reentrancyGuardActive.set(False)

@export
def change_metadata(key: str, value: Any):
    assert not reentrancyGuardActive.get(), "Busy: crowdfund contract is busy, cannot change metadata now."
    assert ctx.caller == metadata['operator'], 'NotOperator: only operator can set metadata!'
    assert key in metadata_keys, f'UnknownKey: {key} is not a crowdfund setting'
    if key == 'reward_unit':
        assert value > decimal('0.0'), 'InvalidAmount: reward unit must be positive'
    metadata[key] = value

# --- Clock / deadline evaluation ---

def load_campaign(campaign_id):
    campaign = campaigns[campaign_id]
    assert campaign, 'UnknownCampaign: campaign does not exist'
    return campaign

def deadline_passed(campaign):
    return now >= campaign["deadline"]

def goal_reached(campaign):
    return campaign["total_contributed"] >= campaign["goal"]

def refunds_open(campaign):
    if campaign["cancelled"]:
        return True
    return deadline_passed(campaign) and not goal_reached(campaign)

# --- Ledger ---

def record_contribution(campaign_id, campaign, contributor, amount):
    cumulative = contributions[campaign_id, contributor] + amount
    contributions[campaign_id, contributor] = cumulative
    campaign["total_contributed"] += amount
    return cumulative

def record_withdrawal(campaign, amount):
    campaign["total_withdrawn"] += amount

def clear_contribution(campaign_id, campaign, contributor):
    amount = contributions[campaign_id, contributor]
    contributions[campaign_id, contributor] = decimal('0.0')
    campaign["total_refunded"] += amount
    return amount

def custody(campaign):
    return campaign["total_contributed"] - campaign["total_withdrawn"] - campaign["total_refunded"]

def currency_balance(currency):
    balance = currency.balance_of(address=ctx.this)
    if balance is None:
        return decimal('0.0')
    return balance

# --- Reward issuance ---

def issue_rewards(campaign_id, campaign, contributor, cumulative):
    # Only the positive delta is minted; balances never shrink.
    entitled = int(cumulative // campaign["reward_unit"])
    balance = rewards[campaign_id, contributor]
    minted = entitled - balance
    if minted <= 0:
        return
    rewards[campaign_id, contributor] = entitled
    campaign["total_rewards"] += minted
    RewardIssued({
        "campaign_id": campaign_id,
        "contributor": contributor,
        "minted": minted,
        "balance": entitled
    })

# --- Campaign creation ---

def open_campaign(owner, goal):
    assert goal > decimal('0.0'), 'InvalidAmount: goal must be positive'

    currency_name = metadata['currency']
    currency = I.import_module(currency_name)
    assert I.enforce_interface(currency, token_interface), 'currency contract not XSC001-compliant'

    campaign_id = campaign_count.get()
    campaign_count.set(campaign_id + 1)
    deadline = now + metadata['campaign_duration']

    campaigns[campaign_id] = {
        "owner": owner,
        "goal": goal,
        "currency": currency_name,
        "created_at": now,
        "deadline": deadline,
        "reward_unit": metadata['reward_unit'],
        "total_contributed": decimal('0.0'),
        "total_withdrawn": decimal('0.0'),
        "total_refunded": decimal('0.0'),
        "total_rewards": 0,
        "cancelled": False
    }

    CampaignCreated({
        "campaign_id": campaign_id,
        "owner": owner,
        "goal": goal,
        "deadline": str(deadline)
    })
    return campaign_id

@export
def create_campaign(goal: float):
    return open_campaign(owner=ctx.caller, goal=goal)

@export
def create_campaign_for(creator: str, goal: float):
    assert ctx.caller == metadata['factory'], 'NotFactory: only the registered factory can create campaigns for others'
    return open_campaign(owner=creator, goal=goal)

# --- Entry points ---

@export
def contribute(campaign_id: int, amount: float):
    campaign = load_campaign(campaign_id)

    assert not reentrancyGuardActive.get(), "Busy: crowdfund contract is busy, please try again."
    reentrancyGuardActive.set(True)

    assert not campaign["cancelled"], 'Cancelled: crowdfund cancelled'
    assert not deadline_passed(campaign), 'Expired: crowdfund timelimit is over'
    assert not goal_reached(campaign), 'GoalMet: contribution limit is met'
    assert amount > decimal('0.0'), 'InvalidAmount: contribution amount must be positive'
    # Contributions crossing the goal are rejected whole, never capped.
    assert campaign["total_contributed"] + amount <= campaign["goal"], \
        'InvalidAmount: contribution exceeds the remaining goal'

    contributor = ctx.caller

    # --- EFFECTS ---
    cumulative = record_contribution(campaign_id, campaign, contributor, amount)
    issue_rewards(campaign_id, campaign, contributor, cumulative)
    campaigns[campaign_id] = campaign

    # --- INTERACTION ---
    currency = I.import_module(campaign["currency"])
    balance_before_transfer = currency_balance(currency)
    currency.transfer_from(amount=amount, to=ctx.this, main_account=contributor)
    received = currency_balance(currency) - balance_before_transfer
    assert received == amount, 'TransferMismatch: currency delivered less than the contributed amount'

    Contribution({
        "campaign_id": campaign_id,
        "contributor": contributor,
        "amount": amount,
        "total_contributed": campaign["total_contributed"]
    })

    reentrancyGuardActive.set(False)

@export
def cancel_fundraise(campaign_id: int):
    campaign = load_campaign(campaign_id)

    assert not reentrancyGuardActive.get(), "Busy: crowdfund contract is busy, please try again."
    assert ctx.caller == campaign["owner"], 'NotOwner: not owner'
    assert not goal_reached(campaign), 'GoalMet: contribution limit is met'
    assert not deadline_passed(campaign), 'Expired: crowdfund timelimit is over'

    if campaign["cancelled"]:
        return

    campaign["cancelled"] = True
    campaigns[campaign_id] = campaign

    FundraiseCancelled({"campaign_id": campaign_id, "owner": campaign["owner"]})

@export
def owner_withdraw(campaign_id: int, amount: float):
    campaign = load_campaign(campaign_id)

    assert not reentrancyGuardActive.get(), "Busy: crowdfund contract is busy, please try again."
    reentrancyGuardActive.set(True)

    assert ctx.caller == campaign["owner"], 'NotOwner: not owner'
    assert not campaign["cancelled"], 'Cancelled: crowdfund cancelled'
    # Checked before the goal: a met goal does not unlock funds once the window has closed.
    assert not deadline_passed(campaign), 'Expired: crowdfund timelimit is over'
    assert goal_reached(campaign), 'GoalNotMet: contribution limit not met'
    assert amount > decimal('0.0'), 'InvalidAmount: withdrawal amount must be positive'
    assert campaign["total_withdrawn"] + amount <= campaign["total_contributed"], \
        'OverWithdrawal: withdrawal over contributions'

    # --- EFFECTS ---
    record_withdrawal(campaign, amount)
    campaigns[campaign_id] = campaign

    # --- INTERACTION ---
    currency = I.import_module(campaign["currency"])
    currency.transfer(amount=amount, to=campaign["owner"])

    OwnerWithdrawal({
        "campaign_id": campaign_id,
        "owner": campaign["owner"],
        "amount": amount,
        "total_withdrawn": campaign["total_withdrawn"]
    })

    reentrancyGuardActive.set(False)

@export
def contributor_withdraw(campaign_id: int):
    campaign = load_campaign(campaign_id)

    assert not reentrancyGuardActive.get(), "Busy: crowdfund contract is busy, please try again."
    reentrancyGuardActive.set(True)

    contributor = ctx.caller

    assert refunds_open(campaign), \
        'RefundNotAllowed: refunds open only after cancellation or a failed fundraise'
    assert contributions[campaign_id, contributor] > decimal('0.0'), \
        'NoContribution: no contribution to withdraw or already withdrawn'

    # --- EFFECTS ---
    # Reward units stay with the contributor.
    amount = clear_contribution(campaign_id, campaign, contributor)
    campaigns[campaign_id] = campaign

    # --- INTERACTION ---
    currency = I.import_module(campaign["currency"])
    currency.transfer(amount=amount, to=contributor)

    Refund({"campaign_id": campaign_id, "contributor": contributor, "amount": amount})

    reentrancyGuardActive.set(False)

# --- Helper/View functions ---
@export
def get_campaign(campaign_id: int):
    return load_campaign(campaign_id)

@export
def get_contribution(campaign_id: int, address: str):
    load_campaign(campaign_id)
    return contributions[campaign_id, address]

@export
def balance_of(campaign_id: int, address: str):
    load_campaign(campaign_id)
    return rewards[campaign_id, address]

@export
def get_custody(campaign_id: int):
    return custody(load_campaign(campaign_id))

@export
def time_limit_over(campaign_id: int):
    return deadline_passed(load_campaign(campaign_id))

@export
def goal_met(campaign_id: int):
    return goal_reached(load_campaign(campaign_id))

@export
def failed(campaign_id: int):
    campaign = load_campaign(campaign_id)
    return deadline_passed(campaign) and not goal_reached(campaign)

@export
def get_state(campaign_id: int):
    campaign = load_campaign(campaign_id)
    if campaign["cancelled"]:
        return "CANCELLED"
    if goal_reached(campaign):
        return "GOAL_MET"
    if deadline_passed(campaign):
        return "EXPIRED_FAILED"
    return "OPEN"
