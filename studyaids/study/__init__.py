"""
Study aid builders: summaries, flashcards and quizzes on top of the
governed generation stack in studyaids.llm.
"""

from studyaids.study.flashcards import FlashcardBuilder
from studyaids.study.quiz import QuizBuilder
from studyaids.study.summary import ChunkedSummaryPipeline

__all__ = ["ChunkedSummaryPipeline", "FlashcardBuilder", "QuizBuilder"]
