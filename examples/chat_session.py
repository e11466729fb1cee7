"""
Terminal chat against a Dify app.

Type a message and press Enter; an empty line is ignored, Ctrl+D quits.
"""

import logging

import dotenv

from langchain_dify import ChatDify, ChatSession

dotenv.load_dotenv()
logging.basicConfig(level=logging.WARNING)

chat = ChatDify()
session = ChatSession(chat)

while True:
    try:
        text = input("you> ")
    except EOFError:
        break

    print("bot> ", end="", flush=True)
    reply = session.send(text, on_increment=lambda fragment: print(fragment, end="", flush=True))
    if reply is None:
        print("(empty message ignored)")
    elif reply == session.fallback_message:
        print(f"\n{reply}")
    else:
        print()

print(f"\n{len(session.history)} turns in this session.")
chat.close()
