"""Draft.IO realtime chat: relay server, chat API and the relay client."""
