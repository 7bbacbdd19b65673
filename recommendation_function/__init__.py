"""Recommendation Cloud Function: swipe-weighted user vector -> Pinecone nearest neighbours."""
