"""Event type constants"""


class EventTypes:
    """Event type strings"""

    # market
    RECORD_BOUGHT = "record_bought"
    RECORD_SOLD = "record_sold"

    # travel
    PLAYER_TRAVELED = "player_traveled"

    # turns
    TURN_ENDED = "turn_ended"
    HOUR_ADVANCED = "hour_advanced"
    GAME_COMPLETED = "game_completed"

    # roster / lifecycle
    GAME_CREATED = "game_created"
    GAME_STARTED = "game_started"
    PLAYER_JOINED = "player_joined"
    PLAYER_LEFT = "player_left"

    # finance
    LOAN_REPAID = "loan_repaid"
