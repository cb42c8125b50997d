"""Seed a demo owner and chatbot (flows + FAQ) for local widget testing."""
from chatcore.db.init_db import init_db
from chatcore.db.session import SessionLocal
from chatcore.models.chatbot import Chatbot
from chatcore.models.user import User

DEMO_EMAIL = "owner@example.com"

FLOWS = [
    {
        "id": "flow_greeting",
        "name": "Greeting",
        "isActive": True,
        "trigger": {"type": "intent", "value": "hello, hey, good morning"},
        "nodes": [
            {
                "id": "greet",
                "type": "message",
                "content": {
                    "text": "Hi there! Want to leave your email so we can follow up?",
                    "buttons": [
                        {"text": "Sure", "value": "yes"},
                        {"text": "No thanks", "value": "no"},
                    ],
                },
                "connections": [],
            }
        ],
    },
    {
        "id": "flow_email",
        "name": "Email capture",
        "isActive": True,
        "trigger": {"type": "condition", "value": "user_input:contains:@"},
        "nodes": [
            {
                "id": "capture",
                "type": "action",
                "content": {"action": {"type": "collect_email", "message": "Thanks! We'll be in touch."}},
                "connections": [],
            }
        ],
    },
]

KNOWLEDGE_BASE = [
    {
        "id": "kb_hours",
        "question": "What are your opening hours?",
        "answer": "We are open 9-5 EST, Monday to Friday.",
        "keywords": ["hours", "open", "time"],
        "category": "general",
    },
    {
        "id": "kb_shipping",
        "question": "How long does shipping take?",
        "answer": "Orders ship within 2 business days.",
        "keywords": ["shipping", "delivery"],
        "category": "orders",
    },
]


def seed_demo_chatbot():
    init_db()
    db = SessionLocal()
    try:
        owner = db.query(User).filter(User.email == DEMO_EMAIL).first()
        if not owner:
            owner = User(email=DEMO_EMAIL, name="Demo Owner", subscription_tier="pro")
            db.add(owner)
            db.commit()
            db.refresh(owner)
            print(f"✅ Created owner: {owner.email}")

        chatbot = db.query(Chatbot).filter(Chatbot.user_id == owner.id).first()
        if not chatbot:
            chatbot = Chatbot(user_id=owner.id, name="Demo Assistant")
            db.add(chatbot)

        chatbot.is_active = True
        chatbot.config = {"fallbackMessage": "Sorry, I can only help with hours and shipping right now."}
        chatbot.flows = FLOWS
        chatbot.knowledge_base = KNOWLEDGE_BASE
        chatbot.ai = {"enabled": False}
        chatbot.integration = {"rateLimiting": {"enabled": True, "requestsPerMinute": 30}}
        db.commit()

        print(f"✅ Demo chatbot ready: {chatbot.id}")
        print(f"   POST /conversations/message with chatbotId={chatbot.id}")
    finally:
        db.close()


if __name__ == "__main__":
    seed_demo_chatbot()
