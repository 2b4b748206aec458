from sim.state import Army, Captain, SimPlayer, empty_resources


def make_player(player_id="player-0", race="korrath", captain_class="warlord", skill="vanguard",
                agent_type="balanced", units=None, resources=None):
    """Player with a main army carrying the captain."""
    if resources is None:
        resources = {**empty_resources(), "gold": 1000, "stone": 400, "wood": 400, "food": 200}
    player = SimPlayer(
        id=player_id,
        race=race,
        captain=Captain(captain_class, skill),
        agent_type=agent_type,
        resources=resources,
    )
    army = Army(id=f"army-{player_id}-0", owner_id=player_id, has_captain=True)
    for unit_type, quantity in (units or {}).items():
        army.add_units(unit_type, quantity)
    player.armies.append(army)
    return player
