"""Generation Webhook Cloud Function: Replicate completion -> Storage, Firestore, Pinecone."""
