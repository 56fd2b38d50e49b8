from langchain_gotama import LineKind, render_lines

message = """*sonríe con calma*

Siéntate cómodamente.

<pause>1 minute</pause>

1. Observa la respiración
- sin forzarla
2. Nota los pensamientos

<citation>
<verse>Dhp 1</verse>
<pali>Manopubbaṅgamā dhammā, manoseṭṭhā manomayā</pali>
<translation>Mind precedes all mental states.</translation>
</citation>
"""

for line in render_lines(message):
    if line.kind is LineKind.CITATION:
        fields = line.citation()
        print(f"[{line.index}] CITATION {fields.verse!r} valid={fields.is_valid}")
    elif line.kind is LineKind.PAUSE:
        print(f"[{line.index}] PAUSE {line.pause_seconds():.0f}s")
    else:
        print(f"[{line.index}] {line.kind.value:<16} {'  ' * line.indent_level}{line.content}")
