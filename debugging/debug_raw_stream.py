"""Print every raw chunk of a chat-messages response next to what the decoder extracts."""

import dotenv

from langchain_dify._auth import AuthConfig
from langchain_dify._client import DifyHttpClient, HttpConfig
from langchain_dify._sse import StreamDecoder
from langchain_dify.chat import CHAT_MESSAGES_PATH, DEFAULT_USER

dotenv.load_dotenv()

auth = AuthConfig.from_env_or_value(None)
client = DifyHttpClient(config=HttpConfig(base_url=auth.base_url), api_key=auth.api_key)
payload = {
    "inputs": {},
    "query": "Say: hello",
    "response_mode": "streaming",
    "conversation_id": "",
    "user": DEFAULT_USER,
}

decoder = StreamDecoder()
with client.stream_post_json(CHAT_MESSAGES_PATH, payload) as r:
    print("status=", r.status_code, "content-type=", r.headers.get("content-type"))
    for i, chunk in enumerate(r.iter_bytes()):
        print("i=", i, "len=", len(chunk), "raw=", repr(chunk[:120]))
        for answer in decoder.feed(chunk):
            print("   answer:", repr(answer))
        print("   pending:", repr(decoder.pending[:80]))

for answer in decoder.finish():
    print("final answer:", repr(answer))

client.close()
