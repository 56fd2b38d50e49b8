import dotenv

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_gotama import ChatGotama

dotenv.load_dotenv()

model = ChatGotama(
    temperature=1,
    max_tokens=800,
)

system = (
    "Cuando cites un sutta usa exactamente: "
    "<citation><verse>REF</verse><pali>PALI</pali><translation>TRADUCCIÓN</translation></citation>"
)

for chunk in model.stream(
    input=[SystemMessage(content=system), HumanMessage(content="¿Qué dice el Dhammapada sobre la mente?")],
):
    # Las citas llegan completas en un solo chunk.
    print(chunk.content, end="", flush=True)
