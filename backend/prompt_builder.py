# backend/prompt_builder.py

from textwrap import dedent
from typing import Dict

from .model import StyleCategory


# Camera / icon / shadow constraints for each style category
STYLE_INSTRUCTIONS: Dict[StyleCategory, str] = {
    StyleCategory.TWO_D_PICTO: dedent(
        """
        - STYLE: Modern professional 2D technical diagram.
        - CAMERA: Strictly 2D flat view.
        - ICONS: Use ONLY white-filled (hollow) outline icons with clean black strokes.
        - LAYOUT: Clean 2D flat topology.
        - CRITICAL: DO NOT include any titles, text headers, or decorative frames. Pure diagram only.
        """
    ).strip(),
    StyleCategory.THREE_D_FLAT: dedent(
        """
        - STYLE: 3D Flat View.
        - CAMERA: Strictly TOP-DOWN (Orthographic style). No tilted perspective.
        - ICONS: Use 3D hardware models viewed from directly above.
        - AESTHETICS: Clean, professional IT icons.
        - CRITICAL: NO SHADOWS. Strictly disable all drop shadows.
        """
    ).strip(),
    StyleCategory.THREE_D_PERSPECTIVE: dedent(
        """
        - STYLE: 3D Perspective Bird's-eye view.
        - CAMERA: Fixed Perspective looking from the top-left towards the bottom-right.
        - CONNECTIONS: All devices MUST be connected using visible, professional Ethernet/LAN cables.
        - CRITICAL: NO SHADOWS. Render on a pure white floor.
        """
    ).strip(),
}


def build_generation_prompt(style: StyleCategory, variant: int) -> str:
    """
    Prompt for rebuilding the uploaded sketch in one style:
    - task header carrying the variant number
    - style category + its instructions
    - topology / label / background rules shared by every style
    """
    return (
        f"TASK: Professional network diagram reconstruction (Variant {variant}).\n"
        "Analyze the uploaded sketch and create a clean, digital version based on "
        "the instructions below.\n"
        "\n"
        f"STYLE CATEGORY: {style.label}\n"
        f"{STYLE_INSTRUCTIONS[style]}\n"
        "\n"
        "RULES:\n"
        "1. TOPOLOGY: Map all nodes and connections from the sketch accurately.\n"
        "2. LABELS: Keep English labels, IP addresses, and Models. "
        "Translate Japanese labels to English.\n"
        "3. BACKGROUND: Pure white.\n"
    )


def build_edit_prompt(instruction: str, style: StyleCategory) -> str:
    """
    Edit prompt sent together with two images: the original sketch first
    (topology ground truth), then the current render (style baseline).
    """
    return (
        "TASK: Modify the network diagram based on the user request.\n"
        "\n"
        "CONTEXT:\n"
        "- Image 1 (First image): The user's original handwritten sketch "
        "(Source of truth for topology).\n"
        "- Image 2 (Second image): The current AI-generated diagram.\n"
        "\n"
        f'REQUESTED CHANGE: "{instruction.strip()}"\n'
        "\n"
        "INSTRUCTIONS:\n"
        "1. Take the current diagram (Image 2) and apply the modification described above.\n"
        "2. Ensure the base topology still matches the original sketch (Image 1).\n"
        f"3. MAINTAIN the style of Image 2 ({style.label}). Do not change the camera angle, "
        "icon style, or color scheme unless requested.\n"
        "4. Make the modification obvious and accurate.\n"
        "5. Output the result as a single, high-quality image on a pure white background.\n"
    )
