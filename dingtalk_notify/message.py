"""
Build the DingTalk message for a run
"""

from dataclasses import dataclass, field

from dingtalk_notify.config import NotifierConfig
from dingtalk_notify.environment import Environment
from dingtalk_notify.occasion import STATUSES, Occasion


@dataclass(frozen=True)
class Button:
    """
    An action card button linking somewhere
    """

    title: str
    action_url: str


@dataclass
class MessagePayload:
    """
    A message ready to be sent to a robot
    """

    title: str
    text: str
    at_all: bool = False
    at_mobiles: frozenset[str] = frozenset()
    buttons: list[Button] = field(default_factory=list)


@dataclass
class BuildContext:
    """
    Everything known about a run at the time a notification is sent
    """

    project_name: str
    project_url: str
    job_name: str
    job_url: str
    duration: str
    executor_name: str
    executor_mobile: str | None = None
    occasion: Occasion | None = None
    buttons: list[Button] = field(default_factory=list)

    def to_markdown(self, content: str = "") -> str:
        """
        Render the run summary, followed by the robot's own content
        """
        status = STATUSES[self.occasion] if self.occasion is not None else None
        if status is not None:
            label = dye(status.label, status.color)
        else:
            label = "unknown"

        return "  \n".join(
            [
                f"# [{self.project_name} {self.job_name}]({self.job_url})",
                "---",
                f"- executor: {self.executor_name}",
                f"- status: {label} ({self.duration})",
                content,
            ]
        )


def dye(text: str, color: str) -> str:
    return f'<font color="{color}">{text}</font>'


def default_buttons(job_url: str) -> list[Button]:
    """
    Links to the changes and console output of a run
    """
    base = job_url if job_url.endswith("/") else job_url + "/"
    return [
        Button("Changes", f"{base}changes"),
        Button("Console", f"{base}console"),
    ]


def assemble(context: BuildContext, notifier: NotifierConfig, env: Environment) -> MessagePayload:
    """
    Produce the message for one robot. The content template is expanded
    against the run environment, and literal '\\n' sequences become newlines
    """
    content = env.expand(notifier.content).replace("\\n", "\n")

    at_mobiles = set(notifier.at_mobiles)
    if context.executor_mobile:
        at_mobiles.add(context.executor_mobile)

    if context.occasion is not None:
        status_label = STATUSES[context.occasion].label
    else:
        status_label = "unknown"

    return MessagePayload(
        title=f"{context.project_name} {status_label}",
        text=context.to_markdown(content),
        at_all=notifier.at_all,
        at_mobiles=frozenset(at_mobiles),
        buttons=list(context.buttons),
    )
