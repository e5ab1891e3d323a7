"""Fixed user-facing replies, localized to English and Arabic."""

from infinet_ai.services.language_service import Language

QUOTA = "quota"
TRANSIENT = "transient"
FATAL = "fatal"
CHAT_UNAVAILABLE = "chat_unavailable"
VOICE_UNAVAILABLE = "voice_unavailable"
VOICE_FALLBACK_UNAVAILABLE = "voice_fallback_unavailable"
TEXT_TO_IMAGE_UNAVAILABLE = "text_to_image_unavailable"
IMAGE_TO_IMAGE_UNAVAILABLE = "image_to_image_unavailable"
VOICE_NOT_UNDERSTOOD = "voice_not_understood"
VOICE_PROGRESS = "voice_progress"
TEXT_TO_IMAGE_PROGRESS = "text_to_image_progress"
IMAGE_TO_IMAGE_PROGRESS = "image_to_image_progress"
IMAGE_QUOTA = "image_quota"
IMAGE_POLICY = "image_policy"
IMAGE_FAILED = "image_failed"
IMAGE_PROMPT_MISSING = "image_prompt_missing"
TEXT_TO_IMAGE_LIMIT = "text_to_image_limit"
IMAGE_TO_IMAGE_LIMIT = "image_to_image_limit"
UNSUPPORTED_ATTACHMENT = "unsupported_attachment"
WELCOME = "welcome"
TEXT_TO_IMAGE_CAPTION = "text_to_image_caption"
IMAGE_TO_IMAGE_CAPTION = "image_to_image_caption"

MESSAGES = {
    QUOTA: {
        Language.DEFAULT: "Oops! You've reached today's token limit. Come back in 24 hours for a fresh refill!",
        Language.ALTERNATE: "عذراً! لقد وصلت إلى الحد اليومي. عد بعد 24 ساعة لرصيد جديد!",
    },
    TRANSIENT: {
        Language.DEFAULT: "Hmm... I didn't catch that. Mind sending it one more time?",
        Language.ALTERNATE: "لم أتمكن من فهم ذلك. هل يمكنك إرسالها مرة أخرى؟",
    },
    FATAL: {
        Language.DEFAULT: "Sorry, something went wrong on our side. Our team has been notified.",
        Language.ALTERNATE: "عذراً، حدث خطأ من جهتنا. تم إبلاغ فريقنا.",
    },
    CHAT_UNAVAILABLE: {
        Language.DEFAULT: "AI service is not configured. Please contact support.",
        Language.ALTERNATE: "خدمة الذكاء الاصطناعي غير مفعلة. يرجى التواصل مع الدعم.",
    },
    VOICE_UNAVAILABLE: {
        Language.DEFAULT: "AI voice service is not configured.",
        Language.ALTERNATE: "خدمة الرسائل الصوتية غير مفعلة.",
    },
    VOICE_FALLBACK_UNAVAILABLE: {
        Language.DEFAULT: "Voice processing service is not configured for fallback.",
        Language.ALTERNATE: "خدمة معالجة الصوت غير مفعلة.",
    },
    TEXT_TO_IMAGE_UNAVAILABLE: {
        Language.DEFAULT: "Image generation service is not configured. Please contact support.",
        Language.ALTERNATE: "خدمة إنشاء الصور غير مفعلة. يرجى التواصل مع الدعم.",
    },
    IMAGE_TO_IMAGE_UNAVAILABLE: {
        Language.DEFAULT: "Image transformation service is not configured.",
        Language.ALTERNATE: "خدمة تعديل الصور غير مفعلة.",
    },
    VOICE_NOT_UNDERSTOOD: {
        Language.DEFAULT: "I couldn't understand your voice message. Could you please try again or send a text message?",
        Language.ALTERNATE: "لم أتمكن من فهم رسالتك الصوتية. هل يمكنك المحاولة مرة أخرى أو إرسال رسالة نصية؟",
    },
    VOICE_PROGRESS: {
        Language.DEFAULT: "🎤 Processing your voice message...",
        Language.ALTERNATE: "🎤 جارٍ معالجة رسالتك الصوتية...",
    },
    TEXT_TO_IMAGE_PROGRESS: {
        Language.DEFAULT: "🎨 Generating your image... This may take a moment.",
        Language.ALTERNATE: "🎨 جارٍ إنشاء صورتك... قد يستغرق ذلك لحظة.",
    },
    IMAGE_TO_IMAGE_PROGRESS: {
        Language.DEFAULT: "🖼️ Processing your image... This may take a moment.",
        Language.ALTERNATE: "🖼️ جارٍ معالجة صورتك... قد يستغرق ذلك لحظة.",
    },
    IMAGE_QUOTA: {
        Language.DEFAULT: (
            "Sorry, the image generation service is currently at capacity. Please try again in a few moments."
        ),
        Language.ALTERNATE: "عذراً، خدمة إنشاء الصور مشغولة حالياً. يرجى المحاولة بعد قليل.",
    },
    IMAGE_POLICY: {
        Language.DEFAULT: (
            "Sorry, I cannot generate that image due to content policy restrictions. Please try a different prompt."
        ),
        Language.ALTERNATE: "عذراً، لا يمكنني إنشاء هذه الصورة بسبب سياسة المحتوى. يرجى تجربة وصف مختلف.",
    },
    IMAGE_FAILED: {
        Language.DEFAULT: "Sorry, I couldn't process that image right now. Please try again.",
        Language.ALTERNATE: "عذراً، لم أتمكن من معالجة الصورة الآن. يرجى المحاولة مرة أخرى.",
    },
    IMAGE_PROMPT_MISSING: {
        Language.DEFAULT: (
            'Please describe what image you want to generate. For example: "generate image of a sunset over mountains"'
        ),
        Language.ALTERNATE: 'يرجى وصف الصورة التي تريدها. مثال: "ارسم صورة غروب الشمس فوق الجبال"',
    },
    TEXT_TO_IMAGE_LIMIT: {
        Language.DEFAULT: "You've reached your daily limit of {limit} DALL-E images. You can generate more images tomorrow!",
        Language.ALTERNATE: "لقد وصلت إلى الحد اليومي وهو {limit} صور. يمكنك إنشاء المزيد غداً!",
    },
    IMAGE_TO_IMAGE_LIMIT: {
        Language.DEFAULT: (
            "You've reached your daily limit of {limit} image transformations. You can transform more images tomorrow!"
        ),
        Language.ALTERNATE: "لقد وصلت إلى الحد اليومي وهو {limit} تعديلات للصور. يمكنك تعديل المزيد غداً!",
    },
    UNSUPPORTED_ATTACHMENT: {
        Language.DEFAULT: "Sorry, I can only handle text, voice messages and images.",
        Language.ALTERNATE: "عذراً، يمكنني التعامل مع النصوص والرسائل الصوتية والصور فقط.",
    },
    WELCOME: {
        Language.DEFAULT: "Hi! I'm the {business} assistant. How can I help you today?",
        Language.ALTERNATE: "مرحباً! أنا مساعد {business}. كيف يمكنني مساعدتك اليوم؟",
    },
    TEXT_TO_IMAGE_CAPTION: {
        Language.DEFAULT: "🎨 Generated: {prompt}",
        Language.ALTERNATE: "🎨 تم الإنشاء: {prompt}",
    },
    IMAGE_TO_IMAGE_CAPTION: {
        Language.DEFAULT: "✨ Transformed: {prompt}",
        Language.ALTERNATE: "✨ تم التعديل: {prompt}",
    },
}


def reply(key: str, language: Language = Language.DEFAULT, **params) -> str:
    variants = MESSAGES[key]
    template = variants.get(language) or variants[Language.DEFAULT]
    return template.format(**params) if params else template
