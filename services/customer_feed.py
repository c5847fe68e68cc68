from fastapi import WebSocket
from typing import Dict, List, Optional
import logging

logger = logging.getLogger(__name__)

class CustomerFeed:
    """Manages WebSocket subscribers per team and pushes customer change events"""

    def __init__(self):
        self.team_connections: Dict[str, List[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, team_id: str):
        await websocket.accept()
        self.team_connections.setdefault(team_id, []).append(websocket)
        logger.info(f"Customer feed connected: team_id={team_id}")

    def disconnect(self, websocket: WebSocket, team_id: str):
        connections = self.team_connections.get(team_id, [])
        if websocket in connections:
            connections.remove(websocket)
        if not connections:
            self.team_connections.pop(team_id, None)
        logger.info(f"Customer feed disconnected: team_id={team_id}")

    async def broadcast_to_team(self, team_id: str, message: dict):
        disconnected = []
        for websocket in self.team_connections.get(team_id, []):
            try:
                await websocket.send_json(message)
            except Exception as e:
                logger.error(f"Failed to push change to team_id={team_id}: {e}")
                disconnected.append(websocket)

        for ws in disconnected:
            self.disconnect(ws, team_id)

    async def customer_changed(self, team_id: str, action: str, customer_id: Optional[str] = None):
        await self.broadcast_to_team(team_id, {
            "type": "customer_changed",
            "action": action,
            "customer_id": customer_id,
        })

    def get_connection_count(self) -> dict:
        return {team_id: len(connections) for team_id, connections in self.team_connections.items()}

customer_feed = CustomerFeed()
