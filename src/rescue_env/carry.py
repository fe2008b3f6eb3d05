from typing import Dict, List, Optional, Tuple


class CarryRegistry:
    """
    Exclusive rescuer <-> victim pairings, keyed by agent id.

    Each agent takes part in at most one pairing. Both directions are
    updated together so a lookup from either side always agrees.
    """

    def __init__(self):
        self._victim_by_rescuer: Dict[int, int] = {}
        self._rescuer_by_victim: Dict[int, int] = {}

    def establish(self, rescuer_id: int, victim_id: int) -> bool:
        """Pair a rescuer with a victim. Returns False if either is already paired."""
        if rescuer_id == victim_id:
            return False
        if self.is_paired(rescuer_id) or self.is_paired(victim_id):
            return False
        self._victim_by_rescuer[rescuer_id] = victim_id
        self._rescuer_by_victim[victim_id] = rescuer_id
        return True

    def release(self, agent_id: int) -> Optional[Tuple[int, int]]:
        """
        Dissolve the pairing that contains agent_id (from either side).

        Returns:
            The removed (rescuer_id, victim_id) pair, or None if the agent was free
        """
        if agent_id in self._victim_by_rescuer:
            rescuer_id = agent_id
            victim_id = self._victim_by_rescuer[agent_id]
        elif agent_id in self._rescuer_by_victim:
            victim_id = agent_id
            rescuer_id = self._rescuer_by_victim[agent_id]
        else:
            return None

        del self._victim_by_rescuer[rescuer_id]
        del self._rescuer_by_victim[victim_id]
        return rescuer_id, victim_id

    def victim_of(self, rescuer_id: int) -> Optional[int]:
        return self._victim_by_rescuer.get(rescuer_id)

    def rescuer_of(self, victim_id: int) -> Optional[int]:
        return self._rescuer_by_victim.get(victim_id)

    def is_paired(self, agent_id: int) -> bool:
        return agent_id in self._victim_by_rescuer or agent_id in self._rescuer_by_victim

    def pairs(self) -> List[Tuple[int, int]]:
        return list(self._victim_by_rescuer.items())

    def clear(self) -> None:
        self._victim_by_rescuer.clear()
        self._rescuer_by_victim.clear()

    def __len__(self) -> int:
        return len(self._victim_by_rescuer)
