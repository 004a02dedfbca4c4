"""Prompt construction and markup escaping for chat content."""

from adal_models import AiConfig, AiRole

ATTACHMENT_MARKER = " [ARCHIVO_ADJUNTO]"
ATTACHMENT_ONLY_PROMPT = (
    "Analiza el archivo adjunto y describe su contenido en detalle, "
    "siguiendo todas las demás instrucciones del sistema."
)


def sanitize_text(text: str | None) -> str:
    """Escape angle brackets so content cannot inject markup."""
    if not text:
        return ""
    return text.replace("<", "&lt;").replace(">", "&gt;")


def _role_instruction(config: AiConfig) -> str:
    if config.role is AiRole.HACKER:
        emojis = "Usa emojis temáticos sutiles (💀, 🤖, ⚡)." if config.emojis else "No uses emojis."
        return (
            "Actúa como un hacker de élite. Tu estilo es cyber-punk, directo, conciso y técnico. "
            f"Usa jerga de hacking. {emojis}"
        )
    if config.role is AiRole.CREATIVE:
        emojis = "Usa emojis para expresar creatividad (✨, 💡, 🚀)." if config.emojis else "No uses emojis."
        return (
            "Actúa como un compañero creativo. Tu enfoque es el brainstorming y las ideas "
            f"innovadoras. Sé inspirador. {emojis}"
        )
    emojis = "Puedes usar emojis de forma sutil." if config.emojis else "No uses emojis."
    return f"Mantén tu estilo original, pero sé amigable y servicial. {emojis}"


def build_system_prompt(config: AiConfig) -> str:
    """Fold persona, language and nickname into one system instruction."""
    base = (
        "Tu identidad principal: Eres un experto en tecnología de México. "
        f"Tu lenguaje OBLIGATORIO Y ÚNICO es {config.language}. "
        "TODAS tus respuestas deben ser en este idioma, sin excepciones. "
        f"Si un usuario te habla en otro idioma, responde en {config.language} "
        "que es tu único canal de comunicación. "
        f"Mantén un tono profesional pero amigable. Ayuda al usuario '{config.nickname}'."
    )
    return f"{base} {_role_instruction(config)}"


def reinforce_user_content(text: str, has_attachment: bool, language: str) -> str:
    """Prefix the language directive; attachment-only sends get a default ask."""
    if not text.strip() and has_attachment:
        text = ATTACHMENT_ONLY_PROMPT
    return f"(RESPUESTA OBLIGATORIA EN {language.upper()}) {text}"
