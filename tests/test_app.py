#!/usr/bin/env python3
"""
End-to-end tests through the FastAPI app: websocket signaling and HTTP routes.
"""

import os
import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient

from main import app


def receive_event(websocket, name):
    """Read envelopes until one named ``name`` arrives and return its data."""
    while True:
        message = websocket.receive_json()
        if message["event"] == name:
            return message["data"]


def send_event(websocket, name, data):
    websocket.send_json({"event": name, "data": data})


def lan(ip):
    return {"x-forwarded-for": ip}


class TestSignalingOverWebSocket(unittest.TestCase):

    def test_full_negotiation_and_host_disconnect(self):
        with TestClient(app) as client:
            with client.websocket_connect("/ws", headers=lan("192.168.1.55")) as viewer:
                viewer_id = receive_event(viewer, "connected")["connID"]

                with client.websocket_connect("/ws", headers=lan("192.168.1.10")) as host:
                    host_id = receive_event(host, "connected")["connID"]
                    send_event(host, "createRoom", "R")
                    self.assertEqual(receive_event(host, "roomCreated"), "R")

                    send_event(viewer, "joinRoom", "R")
                    self.assertEqual(receive_event(viewer, "roomJoined"), "R")

                    send_event(viewer, "viewerJoined", {"roomID": "R"})
                    self.assertEqual(receive_event(host, "newViewer"), viewer_id)

                    offer = {"type": "offer", "sdp": "v=0"}
                    send_event(host, "offer", {"to": viewer_id, "from": host_id, "offer": offer})
                    self.assertEqual(receive_event(viewer, "offer"), {"from": host_id, "offer": offer})

                    answer = {"type": "answer", "sdp": "v=0"}
                    send_event(viewer, "answer", {"to": host_id, "from": viewer_id, "answer": answer})
                    self.assertEqual(receive_event(host, "answer"), {"from": viewer_id, "answer": answer})

                    candidate = {"candidate": "candidate:1", "sdpMid": "0"}
                    send_event(viewer, "iceCandidate", {"to": "host", "from": viewer_id, "candidate": candidate})
                    self.assertEqual(receive_event(host, "iceCandidate"),
                                     {"from": viewer_id, "candidate": candidate})

                    info = client.get("/api/room/R").json()
                    self.assertEqual(info["host"], host_id)
                    self.assertEqual(info["viewers"], [viewer_id])

                self.assertIsNone(receive_event(viewer, "hostDisconnected"))
                self.assertEqual(client.get("/api/rooms").json()["total"], 0)

    def test_viewer_leaving_notifies_host(self):
        with TestClient(app) as client:
            with client.websocket_connect("/ws") as host:
                receive_event(host, "connected")
                send_event(host, "createRoom", "R")
                receive_event(host, "roomCreated")

                with client.websocket_connect("/ws") as viewer:
                    viewer_id = receive_event(viewer, "connected")["connID"]
                    send_event(viewer, "joinRoom", "R")
                    receive_event(viewer, "roomJoined")

                self.assertEqual(receive_event(host, "viewerLeft"), viewer_id)
                self.assertEqual(client.get("/api/room/R").json()["numViewers"], 0)

    def test_late_joiner_and_stop_sharing(self):
        with TestClient(app) as client:
            with client.websocket_connect("/ws") as host, client.websocket_connect("/ws") as viewer:
                send_event(host, "createRoom", "R")
                receive_event(host, "roomCreated")
                send_event(host, "startScreenShare", {"roomID": "R"})

                send_event(viewer, "joinRoom", "R")
                self.assertEqual(receive_event(viewer, "roomJoined"), "R")
                self.assertEqual(receive_event(viewer, "hostIsSharing"), {"roomID": "R"})

                send_event(host, "stopScreenShare", {"roomID": "R"})
                self.assertIsNone(receive_event(viewer, "hostStoppedSharing"))
                self.assertIsNone(receive_event(host, "hostStoppedSharing"))
                self.assertFalse(client.get("/api/room/R").json()["isSharing"])

    def test_local_network_rejection(self):
        with TestClient(app) as client:
            with client.websocket_connect("/ws", headers=lan("192.168.1.10")) as host, \
                    client.websocket_connect("/ws", headers=lan("192.168.2.20")) as viewer:
                send_event(host, "createRoom", "R")
                receive_event(host, "roomCreated")

                send_event(viewer, "joinRoom", "R")
                self.assertEqual(receive_event(viewer, "error"),
                                 "You can only join rooms from the same local network")

    def test_join_missing_room(self):
        with TestClient(app) as client:
            with client.websocket_connect("/ws") as viewer:
                send_event(viewer, "joinRoom", "missing")
                self.assertEqual(receive_event(viewer, "error"), "Room not found")

    def test_malformed_message(self):
        with TestClient(app) as client:
            with client.websocket_connect("/ws") as ws:
                receive_event(ws, "connected")
                ws.send_text("not json")
                self.assertEqual(receive_event(ws, "error"), "Invalid message")


class TestHttpRoutes(unittest.TestCase):

    def test_get_ip(self):
        with TestClient(app) as client:
            response = client.get("/api/get-ip", headers={"x-forwarded-for": "::ffff:10.0.0.5, 1.1.1.1"})
            self.assertEqual(response.status_code, 200)
            self.assertEqual(response.json(), {"ip": "10.0.0.5"})

    def test_default_ice_servers(self):
        with patch.dict(os.environ, {}, clear=False):
            for var in ("STUN_URLS", "TURN_URL", "TURN_USERNAME", "TURN_CREDENTIAL"):
                os.environ.pop(var, None)
            with TestClient(app) as client:
                servers = client.get("/api/ice-servers").json()["iceServers"]
        self.assertEqual(len(servers), 5)
        self.assertEqual(servers[0], {"urls": "stun:stun.l.google.com:19302"})

    def test_turn_server_included_when_configured(self):
        env = {
            "STUN_URLS": "stun:stun.example.org:3478",
            "TURN_URL": "turn:turn.example.org:3478",
            "TURN_USERNAME": "user",
            "TURN_CREDENTIAL": "secret",
        }
        with patch.dict(os.environ, env):
            with TestClient(app) as client:
                servers = client.get("/api/ice-servers").json()["iceServers"]
        self.assertEqual(servers, [
            {"urls": "stun:stun.example.org:3478"},
            {"urls": "turn:turn.example.org:3478", "username": "user", "credential": "secret"},
        ])

    def test_unknown_room(self):
        with TestClient(app) as client:
            response = client.get("/api/room/nope")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["message"], "Room 'nope' not found")

    def test_unknown_endpoint(self):
        with TestClient(app) as client:
            response = client.get("/does-not-exist")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"], "Endpoint not found")

    def test_health(self):
        with TestClient(app) as client:
            body = client.get("/health").json()
        self.assertEqual(body["status"], "healthy")
        self.assertEqual(body["rooms"], 0)


if __name__ == '__main__':
    unittest.main()
