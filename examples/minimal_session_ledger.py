from __future__ import annotations

import json
import logging
import tempfile
from pathlib import Path

from werewolf_ledger import GameLedger, LedgerConfig

PLAYERS = {
    "111": {"name": "Ana", "role": "werewolf"},
    "222": {"name": "Bao", "role": "seer"},
    "333": {"name": "Chi", "role": "villager"},
    "444": {"name": "Dung", "role": "bodyguard"},
    "555": {"name": "Bot-1", "role": "villager", "isAI": True},
}


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    history_dir = Path(tempfile.mkdtemp(prefix="werewolf-ledger-"))

    with GameLedger.from_config(LedgerConfig(backend="json", history_dir=history_dir)) as ledger:
        channel = "987654321"
        ledger.initialize(channel, PLAYERS)

        ledger.record_action(channel, 1, "WEREWOLF", "111", "kill", "222")
        ledger.record_action(channel, 1, "SEER", "222", "inspect", "111")
        ledger.complete_round(channel, 1, deaths=[{"playerId": "222", "killer": "WEREWOLF", "message": "Mauled at night"}])

        ledger.complete_day_phase(
            channel,
            1,
            votes={"333": "111", "444": "111", "555": "skip"},
            execution={"executed": {"id": "111", "name": "Ana", "role": "werewolf"}, "voteCount": 2},
        )
        print("night 1 actions:", sorted(ledger.get_round_actions(channel, 1)))

        final = {pid: dict(p, isAlive=pid not in ("111", "222")) for pid, p in PLAYERS.items()}
        result = ledger.complete_session(channel, final, "VILLAGERS")
        print("complete_session status:", result.status)

    archive = json.loads(Path(result.archive_ref).read_text(encoding="utf-8"))
    print("winner:", archive["winner"])
    print("deaths:", [(d["victim_name"], d["cause"]) for d in archive["death_log"]])


if __name__ == "__main__":
    main()
