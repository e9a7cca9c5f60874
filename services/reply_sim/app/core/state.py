from enum import Enum

class ServerState(str, Enum):
    LISTENING = "LISTENING"
    SHUT_DOWN = "SHUT_DOWN"
