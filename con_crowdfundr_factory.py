I = importlib

created = Hash() # index -> campaign_id
created_count = Variable(default_value=0)
creator_campaigns = Hash() # [creator, n] -> campaign_id
creator_campaign_count = Hash(default_value=0)
metadata = Hash()

InstanceCreated = LogEvent(
    event="instance_created",
    params={
        "index": {'type':int, 'idx':True},
        "campaign_id": {'type':int, 'idx':True},
        "creator": {'type':str, 'idx':True},
        "goal": {'type':(int, float, decimal)}
    })

@construct
def seed():
    metadata['operator'] = ctx.caller
    metadata['crowdfundr'] = 'con_crowdfundr'

@export
def change_metadata(key: str, value: Any):
    assert ctx.caller == metadata['operator'], 'NotOperator: only operator can set metadata!'
    assert key in ['operator', 'crowdfundr'], f'UnknownKey: {key} is not a factory setting'
    metadata[key] = value

@export
def create_instance(goal: float):
    crowdfundr = I.import_module(metadata['crowdfundr'])
    campaign_id = crowdfundr.create_campaign_for(creator=ctx.caller, goal=goal)

    index = created_count.get()
    created[index] = campaign_id
    created_count.set(index + 1)

    n = creator_campaign_count[ctx.caller]
    creator_campaigns[ctx.caller, n] = campaign_id
    creator_campaign_count[ctx.caller] = n + 1

    InstanceCreated({
        "index": index,
        "campaign_id": campaign_id,
        "creator": ctx.caller,
        "goal": goal
    })
    return campaign_id

@export
def get_created_contract_by_index(index: int):
    assert 0 <= index < created_count.get(), 'IndexOutOfRange: no campaign created at this index'
    return created[index]

@export
def get_created_count():
    return created_count.get()

@export
def get_created_contracts_by_creator(creator: str):
    return [creator_campaigns[creator, n] for n in range(creator_campaign_count[creator])]
