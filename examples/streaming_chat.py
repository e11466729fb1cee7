import dotenv

from langchain_core.messages import HumanMessage
from langchain_dify import ChatDify

dotenv.load_dotenv()

model = ChatDify(inputs={}, user="example-user")

for token in model.stream(
    input=[HumanMessage(content="Explain in one paragraph what a pharmaceutical affairs law check is")],
    stream_mode="messages",
):
    print(token.content, end="", flush=True)
print()
