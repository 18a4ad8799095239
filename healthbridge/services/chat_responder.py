"""
Keyword auto-responder for inbound chat messages.

Topics are checked in a fixed order (symptoms, medication, education,
community, appointment, emergency) and the first match answers; anything else
gets the general greeting. Replies to registered numbers are personalised.
"""

from collections.abc import Mapping

from pydantic import Field

from healthbridge.domain.models import DomainModel


class Medication(DomainModel):
    name: str
    dosage: str
    frequency: str
    time: str


class Appointment(DomainModel):
    doctor: str
    specialty: str
    date: str
    time: str


class ChatUser(DomainModel):
    name: str
    medications: list[Medication] = Field(default_factory=list)
    appointments: list[Appointment] = Field(default_factory=list)
    community: str | None = None


class ChatReply(DomainModel):
    type: str
    message: str
    suggestions: list[str] | None = None
    actions: list[str] | None = None
    topics: list[str] | None = None
    groups: list[str] | None = None
    more_info: str | None = None


EDUCATION_TOPICS: dict[str, str] = {
    "diabetes": (
        "Diabetes is a chronic health condition that affects how your body turns food into "
        "energy. Most of the food you eat is broken down into sugar and released into your "
        "bloodstream. When your blood sugar goes up, it signals your pancreas to release insulin."
    ),
    "hypertension": (
        "Hypertension, or high blood pressure, is a common condition in which the long-term "
        "force of the blood against your artery walls is high enough that it may eventually "
        "cause health problems, such as heart disease."
    ),
    "nutrition": (
        "Good nutrition is an important part of leading a healthy lifestyle. Combined with "
        "physical activity, your diet can help you to reach and maintain a healthy weight, "
        "reduce your risk of chronic diseases, and promote your overall health."
    ),
}

SUPPORT_GROUPS = ["Diabetes Support", "Heart Health", "Mental Wellness", "Cancer Support"]


def _mentions(text: str, *keywords: str) -> bool:
    return any(keyword in text for keyword in keywords)


class ChatResponder:
    def __init__(self, users: Mapping[str, ChatUser] | None = None) -> None:
        self.users = dict(users or {})

    def respond(self, sender: str, message: str) -> ChatReply:
        text = message.lower()
        user = self.users.get(sender)

        if _mentions(text, "symptom", "feeling", "pain"):
            return ChatReply(
                type="triage",
                message=(
                    "I understand you're not feeling well. Please tell me more about your "
                    "symptoms. When did they start, and on a scale of 1-10, how severe is it?"
                ),
                suggestions=["Headache", "Fever", "Nausea", "Chest Pain"],
            )

        if _mentions(text, "medication", "medicine", "reminder"):
            if user is None:
                return ChatReply(
                    type="registration",
                    message=(
                        "You need to register to access medication reminders. "
                        "Would you like to register now?"
                    ),
                    actions=["Register", "More Information"],
                )
            lines = [f"{m.name} {m.dosage} - {m.frequency} ({m.time})" for m in user.medications]
            return ChatReply(
                type="medication",
                message="Here are your medication reminders:\n\n" + "\n".join(lines),
                actions=["Mark as taken", "Remind me later"],
            )

        if _mentions(text, "information", "learn", "education"):
            topic = next((t for t in EDUCATION_TOPICS if t in text), None)
            if topic is None:
                return ChatReply(
                    type="education",
                    message="What health topic would you like to learn about?",
                    topics=list(EDUCATION_TOPICS),
                )
            return ChatReply(
                type="education",
                message=EDUCATION_TOPICS[topic],
                more_info=f"For more information on {topic}, visit our health portal.",
            )

        if _mentions(text, "community", "group", "support"):
            if user is not None and user.community:
                return ChatReply(
                    type="community",
                    message=(
                        f"You're part of the {user.community} group. The next virtual meeting "
                        "is on Friday at 6 PM. Would you like to receive notifications for "
                        "this group?"
                    ),
                    actions=["Enable notifications", "Disable notifications"],
                )
            return ChatReply(
                type="community",
                message=(
                    "Would you like to join a support group? We have groups for diabetes, "
                    "heart health, mental wellness, and more."
                ),
                groups=list(SUPPORT_GROUPS),
            )

        if _mentions(text, "appointment", "doctor"):
            if user is not None and user.appointments:
                lines = [
                    f"{a.doctor} ({a.specialty}) - {a.date} at {a.time}" for a in user.appointments
                ]
                return ChatReply(
                    type="appointment",
                    message="Your upcoming appointment:\n\n" + "\n".join(lines),
                    actions=["Reschedule", "Cancel", "Confirm"],
                )
            return ChatReply(
                type="appointment",
                message="You don't have any upcoming appointments. Would you like to schedule one?",
                actions=["Schedule appointment", "View specialists"],
            )

        if _mentions(text, "emergency", "urgent", "help"):
            return ChatReply(
                type="emergency",
                message=(
                    "If this is a medical emergency, please call your local emergency number "
                    "(like 911) immediately. Do you need us to connect you with emergency services?"
                ),
                actions=["Connect to emergency", "Speak to a nurse", "Not an emergency"],
            )

        return ChatReply(
            type="general",
            message=(
                "Hello! How can I assist you with your health today? You can ask about "
                "symptoms, medications, appointments, or health information."
            ),
            suggestions=[
                "Check symptoms",
                "Medication reminder",
                "Health information",
                "Community support",
            ],
        )
