"""
Blocking client for the jsonsock protocol, plus the interactive prompt behind `jsonsock client`.
"""
import json
import logging
import socket
from typing import Any

import click

from .codec import decode_modified_utf8, decode_response_header, encode_request, encode_stream_header

logger = logging.getLogger(__name__)


class SockClient:

    def __init__(self, host: str = "localhost", port: int = 8888, timeout: float | None = None):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.sock: socket.socket | None = None

    def connect(self) -> "SockClient":
        self.sock = socket.create_connection((self.host, self.port), timeout=self.timeout)
        self.sock.sendall(encode_stream_header())
        logger.debug("Connected to %s:%d", self.host, self.port)
        return self

    def close(self) -> None:
        if self.sock is not None:
            self.sock.close()
            self.sock = None

    def __enter__(self) -> "SockClient":
        return self.connect()

    def __exit__(self, *exc_info) -> None:
        self.close()

    def send_raw(self, text: str) -> dict[str, Any]:
        """Send any string as one request, JSON or not, and return the decoded response."""
        self.sock.sendall(encode_request(text))
        return json.loads(self.read_response())

    def request(self, req: dict[str, Any]) -> dict[str, Any]:
        return self.send_raw(json.dumps(req))

    def read_response(self) -> str:
        length = decode_response_header(self.recv_exact(2))
        return decode_modified_utf8(self.recv_exact(length))

    def recv_exact(self, n: int) -> bytes:
        buf = b''
        while len(buf) < n:
            chunk = self.sock.recv(n - len(buf))
            if not chunk:
                raise ConnectionError("Connection closed")
            buf += chunk
        return buf


MENU = "What would you like to do: 1 - echo, 2 - add, 3 - addmany, 4 - string concatenation, 5 - quiz (0 to quit)"


def build_request(choice: int) -> dict[str, Any] | None:
    if choice == 1:
        return {"type": "echo", "data": click.prompt("Which string do you want to send?", default="", show_default=False)}
    if choice == 2:
        num1 = click.prompt("Enter first number")
        num2 = click.prompt("Enter second number")
        return {"type": "add", "num1": num1, "num2": num2}
    if choice == 3:
        click.echo("Enter as many numbers as you like, when done enter 0:")
        nums = []
        num = None
        while num != "0":
            num = click.prompt("", prompt_suffix="> ")
            nums.append(num)
        return {"type": "addmany", "nums": nums}
    if choice == 4:
        string1 = click.prompt("Enter first string", default="", show_default=False)
        string2 = click.prompt("Enter second string", default="", show_default=False)
        return {"type": "stringconcatenation", "string1": string1, "string2": string2}
    if choice == 5:
        click.echo("1: Add a new question\n2: Request a new question\n3: Answer the current question")
        quiz_choice = click.prompt("Quiz option", type=int)
        if quiz_choice == 1:
            question = click.prompt("Enter the new question")
            answer = click.prompt("Enter the answer for the new question")
            return {"type": "quizgame", "addQuestion": True, "question": question, "answer": answer}
        if quiz_choice == 2:
            return {"type": "quizgame", "addQuestion": False}
        if quiz_choice == 3:
            return {"type": "quizgame", "answer": click.prompt("Enter your answer")}
        click.echo("Invalid quiz option.")
        return None
    click.echo("Unknown option.")
    return None


def describe_response(res: dict[str, Any]) -> str:
    if not res.get("ok"):
        return str(res.get("message"))
    res_type = res.get("type")
    if res_type == "echo":
        return res["echo"]
    if res_type in ("add", "addmany", "stringconcatenation"):
        return str(res["result"])
    if res_type == "quizgame":
        if "question" in res:
            prefix = "Your answer is incorrect. " if res.get("result") is False else ""
            return f"{prefix}Question: {res['question']}"
        if "result" in res:
            return "Your answer is " + ("correct" if res["result"] else "incorrect")
        return "Question added."
    return f"Unrecognized response type: {res_type}"


def interactive(client: SockClient) -> None:
    while True:
        click.echo(MENU)
        choice = click.prompt("", type=int, prompt_suffix="> ")
        if choice == 0:
            click.echo("Thank you for using our services. Goodbye!")
            return
        req = build_request(choice)
        if req is None:
            continue
        res = client.request(req)
        logger.debug("Got response: %s", res)
        click.echo(describe_response(res))
